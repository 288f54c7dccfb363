import pytest

from pipeline.checks import DocumentChecks
from pipeline.schemas import DocumentType

AADHAAR_CORPUS = (
    "government of india unique identification authority of india "
    "ravi kumar dob: 15/06/1995 male 1234 5678 9012"
)


@pytest.fixture
def checks():
    return DocumentChecks()


@pytest.mark.parametrize("doc_type", ["aadhaar", "aadhar", DocumentType.AADHAAR])
def test_aadhaar_gate(checks, doc_type):
    assert checks.validate_document_type(AADHAAR_CORPUS, doc_type)
    assert not checks.validate_document_type("republic of india passport", doc_type)


def test_passport_gate(checks):
    assert checks.validate_document_type("republic of india p1234567", "passport")
    assert not checks.validate_document_type(AADHAAR_CORPUS, "passport")


def test_other_gate_always_passes(checks):
    assert checks.validate_document_type("", DocumentType.OTHER)


def test_unknown_type_always_fails(checks):
    assert not checks.validate_document_type(AADHAAR_CORPUS, "driving_license")


def test_match_name_is_case_insensitive_on_the_claim(checks):
    assert checks.match_name(AADHAAR_CORPUS, "Ravi Kumar")
    assert not checks.match_name(AADHAAR_CORPUS, "Ravi Sharma")


@pytest.mark.parametrize("spelling", [
    "15/06/1995", "15-06-1995", "1995-06-15", "1995/06/15", "15061995", "19950615",
])
def test_dob_matches_any_spelling(checks, spelling):
    assert checks.match_dob(f"date of birth {spelling}", "15/06/1995")


def test_dob_variants(checks):
    assert checks.dob_variants("01/02/2003") == [
        "01/02/2003", "01-02-2003", "2003-02-01", "2003/02/01", "01022003", "20030201",
    ]


def test_dob_missing_or_malformed_is_no_match(checks):
    assert not checks.match_dob(AADHAAR_CORPUS, None)
    assert not checks.match_dob(AADHAAR_CORPUS, "")
    assert not checks.match_dob(AADHAAR_CORPUS, "1995-06-15")
    assert not checks.match_dob(AADHAAR_CORPUS, "16/06/1995")


def test_aadhaar_format(checks):
    assert checks.validate_id_format("1234 5678 9012", DocumentType.AADHAAR)
    assert checks.validate_id_format("123456789012", "aadhar")
    assert not checks.validate_id_format("12345", DocumentType.AADHAAR)
    assert not checks.validate_id_format("1234 5678 901A", DocumentType.AADHAAR)


def test_passport_format(checks):
    assert checks.validate_id_format("P1234567", DocumentType.PASSPORT)
    assert checks.validate_id_format("p 1234 5678", DocumentType.PASSPORT)
    assert not checks.validate_id_format("P123", DocumentType.PASSPORT)
    assert not checks.validate_id_format("P1234567890", DocumentType.PASSPORT)
    assert not checks.validate_id_format("P123-4567", DocumentType.PASSPORT)


def test_other_format_is_not_checked(checks):
    assert checks.validate_id_format("anything", DocumentType.OTHER)


def test_identity_card_number_matches_with_or_without_spaces(checks):
    assert checks.match_identity_card_number(AADHAAR_CORPUS, "123456789012")
    assert checks.match_identity_card_number(AADHAAR_CORPUS, "1234 5678 9012")
    assert checks.match_identity_card_number("passport no. p1234567", "P1234567")
    assert not checks.match_identity_card_number(AADHAAR_CORPUS, "999988887777")


def test_matchers_are_idempotent(checks):
    first = (
        checks.match_name(AADHAAR_CORPUS, "Ravi Kumar"),
        checks.match_dob(AADHAAR_CORPUS, "15/06/1995"),
        checks.match_identity_card_number(AADHAAR_CORPUS, "1234 5678 9012"),
    )
    second = (
        checks.match_name(AADHAAR_CORPUS, "Ravi Kumar"),
        checks.match_dob(AADHAAR_CORPUS, "15/06/1995"),
        checks.match_identity_card_number(AADHAAR_CORPUS, "1234 5678 9012"),
    )
    assert first == second == (True, True, True)
