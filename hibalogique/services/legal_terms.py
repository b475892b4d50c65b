# hibalogique/services/legal_terms.py

from dataclasses import dataclass


@dataclass(frozen=True)
class LegalTerms:
    title: str
    paragraphs: tuple[str, ...]
    validity_days: int


QUOTATION_TERMS = LegalTerms(
    title="Terms and Conditions",
    validity_days=30,
    paragraphs=(
        "This quotation is valid for 30 days from the date of issue unless a different "
        "validity date is stated above. Prices are in Canadian dollars and exclude any "
        "applicable taxes unless shown separately.",
        "Turnaround times are estimates counted in business days from receipt of all samples "
        "in acceptable condition together with a completed chain-of-custody form. Samples "
        "received damaged, mislabelled or outside the required temperature range may be "
        "rejected or analysed with a qualifying remark.",
        "Results apply only to the samples as received. The laboratory is not responsible for "
        "sampling performed by the client. Unless otherwise agreed in writing, samples are "
        "retained for 30 days after the report is issued and then disposed of.",
        "Acceptance of this quotation, by purchase order or by shipping samples, constitutes "
        "agreement to these terms. Invoices are payable within 30 days. The laboratory's "
        "liability is limited to the amount invoiced for the analyses concerned.",
        "All client information and results are treated as confidential and are disclosed to "
        "third parties only with the client's written consent or where required by law.",
    ),
)
