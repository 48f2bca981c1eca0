import asyncio
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from vitrine import CatalogItem, Category, build_search_from_path

CATEGORIES = [Category(id="food", name="Alimentação"), Category(id="law", name="Advocacia")]
SITES = [
    CatalogItem(id="a", title="Padaria Pão Quente", description="bolos, pães e doces", categoryId="food"),
    CatalogItem(id="b", title="Escritório de Advocacia", description="serviços jurídicos", categoryId="law"),
    CatalogItem(id="c", title="Confeitaria Doce Mel", description="bolos de festa", categoryId="food"),
]


async def main() -> None:
    runtime = build_search_from_path(Path(__file__).with_name("catalog_search.yaml"))
    mode = "remote + local fallback" if runtime.remote_enabled else "local only (no credential)"
    print(f"smart search mode: {mode}")

    browser = runtime.new_browser(SITES, CATEGORIES)
    browser.search.subscribe(lambda state: print(f"  [{state.phase.value}] results={list(state.result_ids)}"))
    try:
        for text in ("b", "bo", "bolo"):
            browser.set_query(text)
            await asyncio.sleep(0.05)
        await browser.search.wait_idle()
        print("visible:", [site.title for site in browser.visible])

        browser.select_category("law")
        await browser.search.wait_idle()
        print("visible in 'law':", [site.title for site in browser.visible])
    finally:
        browser.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
