# hibalogique/services/tax.py

# Combined federal + provincial sales tax per Canadian province/territory.
PROVINCE_TAX_RATES: dict[str, float] = {
    "AB": 0.05,
    "BC": 0.12,
    "MB": 0.12,
    "NB": 0.15,
    "NL": 0.15,
    "NS": 0.14,
    "NT": 0.05,
    "NU": 0.05,
    "ON": 0.13,
    "PE": 0.15,
    "QC": 0.14975,
    "SK": 0.11,
    "YT": 0.05,
}

PROVINCE_NAMES: dict[str, str] = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia",
    "NT": "Northwest Territories",
    "NU": "Nunavut",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "YT": "Yukon",
}


def tax_rate_for(country: str, province: str) -> float:
    if country != "Canada":
        return 0.0
    return PROVINCE_TAX_RATES.get((province or "").strip().upper(), 0.0)
