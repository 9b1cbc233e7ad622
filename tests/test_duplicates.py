"""Tests for duplicate candidate detection.

These tests verify:
- Closed-world intersection: results never contain unknown identifiers
- Both response shapes (structured JSON and freeform text)
- Degradation to an empty result on unreadable content
"""

import json

import pytest

from fixtures import content_transport, status_transport
from statement_ingest.config import Config
from statement_ingest.extraction.duplicates import (
    DuplicateDetector,
    FreeformResult,
    StructuredResult,
    interpret_response,
    resolve_duplicate_ids,
    tokenize_ids,
)
from statement_ingest.llm_client import ConfigurationError, UpstreamError
from statement_ingest.schemas import DuplicateQuery, ExistingTransaction


def _candidate(id_: str, amount: float = 4.5) -> ExistingTransaction:
    return ExistingTransaction(
        id=id_,
        amount=amount,
        currency="USD",
        occurred_on="2024-01-05",
        category="Food",
        merchant="Starbucks",
    )


class TestInterpretResponse:
    """Tests for classifying response content."""

    def test_duplicate_ids_object(self) -> None:
        assert interpret_response('{"duplicate_ids": ["b", "c"]}') == StructuredResult(("b", "c"))

    def test_bare_list(self) -> None:
        assert interpret_response('["b", 7]') == StructuredResult(("b", "7"))

    def test_groups_exclude_original(self) -> None:
        """The original of each group is never reported."""
        content = json.dumps(
            {"groups": [{"original_id": "a", "duplicate_ids": ["a", "b"], "reason": "same purchase"}]}
        )

        assert interpret_response(content) == StructuredResult(("b",))

    def test_already_decoded(self) -> None:
        assert interpret_response({"duplicate_ids": ["b"]}) == StructuredResult(("b",))

    def test_fenced_json(self) -> None:
        assert interpret_response('```json\n{"duplicate_ids": ["b"]}\n```') == StructuredResult(("b",))

    def test_freeform(self) -> None:
        assert interpret_response("a, c, a") == FreeformResult("a, c, a")

    def test_json_scalar_is_freeform(self) -> None:
        assert isinstance(interpret_response('"b"'), FreeformResult)

    def test_non_string_content(self) -> None:
        assert interpret_response(None) == FreeformResult("")


class TestTokenizeIds:
    """Tests for freeform tokenization."""

    def test_commas_and_whitespace(self) -> None:
        assert tokenize_ids("a, c,\n a  b") == ["a", "c", "a", "b"]

    def test_quotes_and_brackets_stripped(self) -> None:
        assert tokenize_ids('["a", "b"]') == ["a", "b"]

    def test_empty(self) -> None:
        assert tokenize_ids("  ") == []


class TestResolveDuplicateIds:
    """Tests for the closed-world intersection."""

    def test_freeform_unknowns_discarded_and_collapsed(self) -> None:
        """Unknown ids are dropped and repeats collapse."""
        query = DuplicateQuery(candidates=(_candidate("a"), _candidate("b")))

        result = resolve_duplicate_ids(FreeformResult("a, c, a"), query)

        assert result.ids == frozenset({"a"})
        assert result.to_dict() == {"duplicate_ids": ["a"]}

    def test_structured_unknowns_discarded(self) -> None:
        query = DuplicateQuery(candidates=(_candidate("a"), _candidate("b")))

        result = resolve_duplicate_ids(StructuredResult(("b", "zzz", "b")), query)

        assert result.ordered_ids == ("b",)

    @pytest.mark.parametrize(
        "response",
        [
            FreeformResult(""),
            FreeformResult("no duplicates found"),
            FreeformResult("x y z 1 2 3"),
            StructuredResult(()),
            StructuredResult(("A", " a")),
        ],
    )
    def test_result_is_subset_of_candidates(self, response) -> None:
        query = DuplicateQuery(candidates=(_candidate("a"), _candidate("b"), _candidate("c")))

        result = resolve_duplicate_ids(response, query)

        assert result.ids <= query.known_ids

    def test_ordered_by_candidate_position(self) -> None:
        query = DuplicateQuery(candidates=(_candidate("a"), _candidate("b"), _candidate("c")))

        result = resolve_duplicate_ids(StructuredResult(("c", "a")), query)

        assert result.ordered_ids == ("a", "c")


class TestDuplicateDetector:
    """Tests for DuplicateDetector against a stubbed service."""

    def test_freeform_answer(self, config: Config, make_client) -> None:
        """Freeform text is tokenized and restricted to known ids."""
        detector = DuplicateDetector(config, client=make_client(content_transport("a, c, a")))

        result = detector.detect([_candidate("a"), _candidate("b")])

        assert result.ids == frozenset({"a"})

    def test_structured_answer(self, config: Config, make_client, stored_transactions) -> None:
        transport = content_transport('{"duplicate_ids": ["b"]}')
        detector = DuplicateDetector(config, client=make_client(transport))

        result = detector.detect(stored_transactions)

        assert result.to_dict() == {"duplicate_ids": ["b"]}

    def test_request_body(self, config: Config, make_client, stored_transactions) -> None:
        transport = content_transport('{"duplicate_ids": []}')
        DuplicateDetector(config, client=make_client(transport)).detect(stored_transactions)

        (body,) = transport.json_bodies()
        assert body["model"] == "sonar"
        assert body["temperature"] == 0.1
        assert "response_format" not in body
        assert len(body["messages"]) == 1
        assert body["messages"][0]["role"] == "user"
        assert "ID: a | Date: 2024-01-05 | Amount: 4.5 USD | Merchant: Starbucks" in body["messages"][0]["content"]

    def test_malformed_degrades_to_empty(self, config: Config, make_client, stored_transactions) -> None:
        transport = content_transport(None)
        detector = DuplicateDetector(config, client=make_client(transport))

        result = detector.detect(stored_transactions)

        assert result.ids == frozenset()
        assert len(transport.requests) == 1

    def test_upstream_error_propagates(self, config: Config, make_client, stored_transactions) -> None:
        detector = DuplicateDetector(config, client=make_client(status_transport(500)))

        with pytest.raises(UpstreamError) as exc_info:
            detector.detect(stored_transactions)

        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize("ids", [[], ["a"], ["a", "a"]])
    def test_fewer_than_two_candidates_makes_no_request(self, config: Config, make_client, ids) -> None:
        transport = content_transport('{"duplicate_ids": ["a"]}')
        detector = DuplicateDetector(config, client=make_client(transport))

        result = detector.detect([_candidate(i) for i in ids])

        assert result.ids == frozenset()
        assert transport.requests == []

    def test_missing_key(self, config_without_key: Config, stored_transactions) -> None:
        with pytest.raises(ConfigurationError):
            DuplicateDetector(config_without_key).detect(stored_transactions)
