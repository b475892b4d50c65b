from hibalogique.services.money import fmt_money, fmt_rate, qmoney


def test_fmt_money_groups_thousands():
    assert fmt_money(1234.567) == "$1,234.57"
    assert fmt_money(1234567) == "$1,234,567.00"
    assert fmt_money(0) == "$0.00"
    assert fmt_money(None) == "$0.00"


def test_fmt_money_negative_and_symbol():
    assert fmt_money(-1) == "-$1.00"
    assert fmt_money(5, symbol="CA$") == "CA$5.00"


def test_qmoney_rounds_half_up():
    assert str(qmoney(310.4325)) == "310.43"
    assert str(qmoney("0.125")) == "0.13"


def test_fmt_rate():
    assert fmt_rate(0.14975) == "14.975%"
    assert fmt_rate(0.13) == "13.000%"
    assert fmt_rate(0) == "0.000%"
