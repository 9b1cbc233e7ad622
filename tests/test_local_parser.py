"""Tests for the offline statement parser.

These tests verify:
- Header detection and column mapping for spreadsheet exports
- Date, amount and currency recognition in cells and free text
- Line-by-line parsing of PDF text and headerless rows
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from statement_ingest.extraction.local_parser import (
    LocalStatementParser,
    classify_header,
    clean_merchant,
    detect_currency,
    detect_document_currency,
    find_header_row,
    normalize_header,
    parse_cell_date,
    parse_text_date,
)
from statement_ingest.schemas import RawStatementInput


@pytest.fixture
def parser() -> LocalStatementParser:
    return LocalStatementParser(default_year=2024)


class TestHeaders:
    """Tests for header normalization and detection."""

    @pytest.mark.parametrize(
        "cell,expected",
        [
            ("Transaction Date", "transaction date"),
            ("postingDate", "posting date"),
            ("Amount (CAD)", "amount cad"),
            ("  Merchant_Name ", "merchant name"),
            (None, ""),
        ],
    )
    def test_normalize_header(self, cell, expected: str) -> None:
        assert normalize_header(cell) == expected

    @pytest.mark.parametrize(
        "cell,expected",
        [
            ("Date", "date"),
            ("Posting Date", "date"),
            ("Amount (USD)", "amount"),
            ("Debit Amount", "debit"),
            ("Credit", "credit"),
            ("CR", "credit"),
            ("Description", "description"),
            ("Payment Method", "payment_method"),
            ("Currency Code", "currency"),
            ("Category", "category"),
            ("Balance", None),
            ("", None),
        ],
    )
    def test_classify_header(self, cell: str, expected) -> None:
        """Aliases match whole words and the most specific alias wins."""
        assert classify_header(cell) == expected

    def test_find_header_row_skips_preamble(self) -> None:
        rows = [
            ("ACME BANK",),
            ("Account statement", "January 2024"),
            ("Date", "Description", "Debit", "Credit", "Balance"),
            ("2024-01-05", "STARBUCKS", "4.50", "", "995.50"),
        ]

        assert find_header_row(rows) == (2, {"date": 0, "description": 1, "debit": 2, "credit": 3})

    def test_find_header_row_needs_date_and_money(self) -> None:
        assert find_header_row([("Description", "Category"), ("STARBUCKS", "Food")]) is None
        assert find_header_row(["Date, Amount, Description"]) is None


class TestDates:
    """Tests for date recognition."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2024-01-05 STARBUCKS", date(2024, 1, 5)),
            ("2024/1/5", date(2024, 1, 5)),
            ("03 Jan  05 Jan  UBER TRIP", date(2024, 1, 3)),
            ("5 January 2023 rent", date(2023, 1, 5)),
            ("Sept 9, 2022 ACME", date(2022, 9, 9)),
            ("Dec 24 GIFT SHOP", date(2024, 12, 24)),
            ("25/12/2023 XMAS", date(2023, 12, 25)),
            ("12/25/2023 XMAS", date(2023, 12, 25)),
            ("05/01/24", date(2024, 1, 5)),
        ],
    )
    def test_parse_text_date(self, text: str, expected: date) -> None:
        assert parse_text_date(text, default_year=2024) == expected

    @pytest.mark.parametrize("text", ["STARBUCKS 4.50", "2024-02-30", "12 items", "Maybe 5", "31/31/2024"])
    def test_no_date(self, text: str) -> None:
        assert parse_text_date(text, default_year=2024) is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            (datetime(2024, 1, 5, 13, 30), date(2024, 1, 5)),
            (date(2024, 1, 5), date(2024, 1, 5)),
            (45296, date(2024, 1, 5)),
            (45296.6, date(2024, 1, 6)),
            ("05/01/2024", date(2024, 1, 5)),
        ],
    )
    def test_parse_cell_date(self, value, expected: date) -> None:
        """Date objects, Excel serial days and date strings are accepted."""
        assert parse_cell_date(value, default_year=2024) == expected

    @pytest.mark.parametrize("value", [None, True, 0, -3, 10**9, "", "n/a"])
    def test_parse_cell_date_rejects(self, value) -> None:
        assert parse_cell_date(value, default_year=2024) is None


class TestCurrency:
    """Tests for currency detection."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("C$ 12.00", "CAD"),
            ("12.00 CAD", "CAD"),
            ("A$5.00", "AUD"),
            ("US$ 5.00", "USD"),
            ("€ 3,20", "EUR"),
            ("£9.99", "GBP"),
            ("₹ 500.00", "INR"),
            ("¥1200", "JPY"),
            ("$5.00", None),
            ("42.10", None),
            (42.1, None),
        ],
    )
    def test_detect_currency(self, text, expected) -> None:
        assert detect_currency(text) == expected

    def test_document_currency(self) -> None:
        assert detect_document_currency("Royal Bank, Toronto, Ontario\nJUN 28 COFFEE $4.50") == "CAD"
        assert detect_document_currency("Kontoauszug € 12,00 € 3,20") == "EUR"
        assert detect_document_currency("$4.50") == "USD"
        assert detect_document_currency("") == "USD"


class TestCleanMerchant:
    """Tests for merchant cleanup."""

    def test_strips_noise(self) -> None:
        assert clean_merchant(" , USD, STARBUCKS 12345678 | ") == "STARBUCKS"
        assert clean_merchant("INTERAC CONTACTLESS SHELL") == "SHELL"

    def test_length_limit(self) -> None:
        assert len(clean_merchant("X" * 100)) == 64

    def test_empty(self) -> None:
        assert clean_merchant(" | , ") is None


class TestColumnParsing:
    """Spreadsheet exports with a header row."""

    def test_amount_column(self, parser: LocalStatementParser) -> None:
        rows = [
            ("Date", "Amount", "Currency", "Description", "Category", "Card"),
            ("2024-01-05", "42.10", "usd", "STARBUCKS", "Food", "Visa"),
            ("2024-01-06", "(15.00)", "", "REFUND ACME", "", ""),
        ]

        expenses = parser.parse_rows(rows)

        assert [tx.to_dict() for tx in expenses] == [
            {
                "amount": 42.1,
                "currency": "USD",
                "occurred_on": "2024-01-05",
                "merchant": "STARBUCKS",
                "category": "Food",
                "payment_method": "Visa",
                "line_index": 2,
            },
            {
                "amount": -15.0,
                "currency": "USD",
                "occurred_on": "2024-01-06",
                "merchant": "REFUND ACME",
                "line_index": 3,
            },
        ]
        assert expenses[0].amount == Decimal("42.10")

    def test_debit_and_credit_columns(self, parser: LocalStatementParser) -> None:
        """Debits are positive spends, credits negative refunds."""
        rows = [
            ("Date", "Description", "Debit", "Credit"),
            ("05/01/2024", "GROCER", "23.40", ""),
            ("06/01/2024", "RETURN", "", "10.00"),
            ("07/01/2024", "ADJUSTED", "5.00", "2.00"),
            ("08/01/2024", "NOTHING", "", ""),
        ]

        expenses = parser.parse_rows(rows)

        assert [(tx.line_index, tx.amount) for tx in expenses] == [
            (2, Decimal("23.40")),
            (3, Decimal("-10.00")),
            (4, Decimal("3.00")),
        ]

    def test_currency_from_amount_cell(self, parser: LocalStatementParser) -> None:
        rows = [("Date", "Amount"), ("2024-01-05", "C$12.00"), ("2024-01-06", "$4.00")]

        assert [tx.currency for tx in parser.parse_rows(rows)] == ["CAD", "USD"]

    def test_native_cell_values(self, parser: LocalStatementParser) -> None:
        """Cells decoded as numbers and dates are used directly."""
        rows = [("Date", "Amount"), (45296, 42.1), (datetime(2024, 1, 6), Decimal("-3.5"))]

        expenses = parser.parse_rows(rows)

        assert [(tx.occurred_on, tx.amount) for tx in expenses] == [
            ("2024-01-05", Decimal("42.1")),
            ("2024-01-06", Decimal("-3.5")),
        ]

    def test_rows_without_date_or_amount_are_skipped(self, parser: LocalStatementParser) -> None:
        rows = [
            ("Date", "Amount", "Description"),
            ("", "4.50", "NO DATE"),
            ("2024-01-05", "n/a", "NO AMOUNT"),
            ("2024-01-06", "1.5e3", "NOT AN AMOUNT"),
            ("2024-01-07",),
            ("2024-01-08", "9.99", "KEPT"),
        ]

        assert [(tx.line_index, tx.merchant) for tx in parser.parse_rows(rows)] == [(6, "KEPT")]

    def test_line_index_counts_preamble_rows(self, parser: LocalStatementParser) -> None:
        """Row positions match the numbering used in extraction requests."""
        rows = [("ACME BANK",), (), ("Date", "Amount"), ("2024-01-05", "1.00")]

        assert [tx.line_index for tx in parser.parse_rows(rows)] == [4]


class TestLineParsing:
    """PDF text and headerless rows."""

    def test_headerless_rows(self, parser: LocalStatementParser, sample_rows: list[str]) -> None:
        expenses = parser.parse_rows(sample_rows)

        assert [(tx.line_index, tx.amount, tx.currency, tx.merchant) for tx in expenses] == [
            (1, Decimal("42.10"), "USD", "STARBUCKS"),
            (2, Decimal("-15.00"), "USD", "REFUND ACME"),
        ]

    def test_pdf_text(self, sample_pdf_text: str) -> None:
        """Summary lines are skipped; the CR marker makes a credit."""
        expenses = LocalStatementParser().parse(RawStatementInput.from_text(sample_pdf_text))

        assert [(tx.occurred_on, tx.amount, tx.merchant, tx.line_index) for tx in expenses] == [
            ("2024-01-03", Decimal("23.40"), "UBER TRIP", None),
            ("2024-01-07", Decimal("-12.99"), "AMAZON MKTPLACE", None),
        ]

    def test_running_balance_is_not_the_amount(self, parser: LocalStatementParser) -> None:
        tx = parser.parse_line("JUN 28 | JUN 30 | HERTZ RENTAL | $109.61 | $1,204.11 | 12", 2024)

        assert tx is not None
        assert tx.amount == Decimal("109.61")
        assert tx.occurred_on == "2024-06-28"

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("2024-01-05 COFFEE (4.50)", "-4.50"),
            ("2024-01-05 COFFEE -4.50", "-4.50"),
            ("2024-01-05 COFFEE REFUND 4.50", "-4.50"),
            ("2024-01-05 SAVINGS DEPOSIT CREDIT 4.50", "4.50"),
        ],
    )
    def test_signs(self, parser: LocalStatementParser, line: str, expected: str) -> None:
        assert parser.parse_line(line, 2024).amount == Decimal(expected)

    def test_sign_inference_can_be_disabled(self) -> None:
        parser = LocalStatementParser(infer_sign_from_text=False)

        assert parser.parse_line("2024-01-05 COFFEE REFUND 4.50", 2024).amount == Decimal("4.50")

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "STARBUCKS 4.50",
            "2024-01-05 STARBUCKS",
            "2024-01-05 STARBUCKS 4",
            "Closing balance 2024-01-31 1,204.11",
            "Statement period 01.01.2024 - 31.01.2024",
        ],
    )
    def test_lines_without_expense(self, parser: LocalStatementParser, line: str) -> None:
        assert parser.parse_line(line, 2024) is None

    def test_line_currency_overrides_document(self, parser: LocalStatementParser) -> None:
        text = "Toronto branch CAD statement\n2024-01-05 LUNCH 12.00\n2024-01-06 DINNER 30.00 USD"

        assert [tx.currency for tx in parser.parse_text(text)] == ["CAD", "USD"]

    def test_year_taken_from_statement(self) -> None:
        text = "Statement 2023\nDec 24 GIFT SHOP 19.99"

        (tx,) = LocalStatementParser().parse_text(text)
        assert tx.occurred_on == "2023-12-24"
