import asyncio
import unittest
from pathlib import Path

import yaml

from vitrine.builder import (
    SearchConfigError,
    build_search_from_env,
    build_search_from_path,
    build_search_from_yaml,
    resolve_credential,
)
from vitrine.schema import CatalogItem

PROJECT_ROOT = Path(__file__).resolve().parent.parent
EXAMPLE_CONFIG = PROJECT_ROOT / "examples" / "catalog_search.yaml"


class FakeResponse:
    def __init__(self, text: str) -> None:
        self.text = text


class FakeGeminiModel:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = []

    async def generate_content_async(self, contents, request_options=None):
        self.calls.append((contents, request_options))
        return FakeResponse(self.text)


class CredentialResolutionTestCase(unittest.TestCase):
    def test_absent_everywhere(self) -> None:
        self.assertIsNone(resolve_credential(None, {}))
        self.assertIsNone(resolve_credential(None, {"GEMINI_API_KEY": "   "}))

    def test_explicit_value_wins(self) -> None:
        self.assertEqual(resolve_credential("abc", {"GEMINI_API_KEY": "env"}), "abc")

    def test_env_placeholder(self) -> None:
        self.assertEqual(resolve_credential("{{ env.SEARCH_KEY }}", {"SEARCH_KEY": "k1"}), "k1")

    def test_missing_placeholder_falls_back_to_known_variables(self) -> None:
        self.assertEqual(resolve_credential("{{ env.SEARCH_KEY }}", {"API_KEY": "k2"}), "k2")
        self.assertIsNone(resolve_credential("{{ env.SEARCH_KEY }}", {}))

    def test_lookup_order(self) -> None:
        environ = {"API_KEY": "generic", "GOOGLE_API_KEY": "google"}
        self.assertEqual(resolve_credential(None, environ), "google")


class BuilderTestCase(unittest.TestCase):
    def test_defaults_without_credential(self) -> None:
        runtime = build_search_from_env(environ={})
        self.assertFalse(runtime.remote_enabled)
        self.assertEqual(runtime.config.search.debounce_seconds, 0.6)
        self.assertEqual(runtime.config.provider.timeout.seconds, 8.0)

    def test_credential_enables_remote_matching(self) -> None:
        model = FakeGeminiModel('["b"]')
        runtime = build_search_from_env(environ={"GEMINI_API_KEY": "x"}, client=model)
        self.assertTrue(runtime.remote_enabled)
        items = [CatalogItem(id="a", title="A"), CatalogItem(id="b", title="B")]
        self.assertEqual(asyncio.run(runtime.provider.match("bee", items)), ["b"])
        self.assertEqual(model.calls[0][1], {"timeout": 8.0})

    def test_example_config_loads(self) -> None:
        runtime = build_search_from_path(EXAMPLE_CONFIG, environ={})
        self.assertEqual(runtime.config.search.debounce_seconds, 0.5)
        self.assertFalse(runtime.remote_enabled)
        prompt = runtime.prompts.render_prompt("smart_search", {"query": "padaria", "candidates": []})
        self.assertIn("padaria", prompt["user"])

    def test_example_config_reads_credential_placeholder(self) -> None:
        runtime = build_search_from_path(EXAMPLE_CONFIG, environ={"VITRINE_GEMINI_KEY": "x"})
        self.assertTrue(runtime.remote_enabled)

    def test_invalid_configuration(self) -> None:
        with self.assertRaises(SearchConfigError):
            build_search_from_yaml({"search": {"debounce_seconds": 0}}, environ={})
        with self.assertRaises(SearchConfigError):
            build_search_from_yaml({"prompts": {"templates": {"other": {"user": "x"}}}}, environ={})
        with self.assertRaises(SearchConfigError):
            build_search_from_yaml(["not", "a", "mapping"], environ={})

    def test_unreadable_file(self) -> None:
        with self.assertRaises(SearchConfigError):
            build_search_from_path(PROJECT_ROOT / "missing.yaml", environ={})

    def test_custom_template_overrides_default(self) -> None:
        config = yaml.safe_load(
            """
            prompts:
              partials:
                tone: Responda apenas com JSON.
              templates:
                smart_search:
                  user: "{{> tone }} Busca: {{ query }} em {{ candidates | length }} itens"
            """
        )
        runtime = build_search_from_yaml(config, environ={})
        prompt = runtime.prompts.render_prompt("smart_search", {"query": "bolo", "candidates": [1, 2]})
        self.assertEqual(prompt, {"user": "Responda apenas com JSON. Busca: bolo em 2 itens"})

    def test_sessions_from_runtime_are_independent(self) -> None:
        runtime = build_search_from_yaml({"search": {"debounce_seconds": 0.01}}, environ={})
        items = [CatalogItem(id="a", title="Padaria"), CatalogItem(id="b", title="Advocacia")]

        async def scenario():
            first = runtime.new_controller(items)
            second = runtime.new_controller(items)
            first.set_query("pad")
            await first.wait_idle()
            return first.result_ids, second.result_ids

        self.assertEqual(asyncio.run(scenario()), (("a",), ("a", "b")))


if __name__ == "__main__":
    unittest.main()
