from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from hibalogique.config import settings
from hibalogique.domain.quotes import LineItem, Quote
from hibalogique.services.legal_terms import QUOTATION_TERMS, LegalTerms
from hibalogique.services.money import fmt_money, fmt_rate
from hibalogique.services.pricing import DerivedTotals, to_number
from hibalogique.services.tax import PROVINCE_NAMES

# hibalogique/
#   services/preview_renderer.py  (this file)
#   templates/preview.html
TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def _date(value) -> str:
    return value.isoformat() if value else ""


class PreviewRenderer:
    """Renders the client-facing, printable version of the live quotation."""

    def __init__(
        self,
        templates_dir: Path = TEMPLATES_DIR,
        terms: LegalTerms = QUOTATION_TERMS,
        currency_symbol: Optional[str] = None,
    ):
        self.terms = terms
        symbol = currency_symbol or settings.currency_symbol
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["money"] = lambda v: fmt_money(v, symbol=symbol)
        self.env.filters["price"] = lambda v: fmt_money(to_number(v), symbol=symbol)
        self.env.filters["rate"] = fmt_rate
        self.env.filters["date"] = _date

    def render_template(self, name: str, context: Mapping[str, Any]) -> str:
        template = self.env.get_template(name)
        return template.render(**context)

    def render(self, quote: Quote, lines: list[LineItem], totals: DerivedTotals) -> str:
        rows = [
            {"line": ln, "subtotal": sub}
            for ln, sub in zip(lines, totals.line_subtotals)
        ]
        province = PROVINCE_NAMES.get(quote.province, quote.province) if quote.country == "Canada" else ""
        return self.render_template(
            "preview.html",
            {
                "company_name": settings.company_name,
                "company_contact": settings.company_contact,
                "quote": quote,
                "province_name": province,
                "rows": rows,
                "totals": totals,
                "terms": self.terms,
            },
        )
