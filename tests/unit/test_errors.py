"""Unit tests for the error taxonomy and ledger error mapping"""
import pytest

from raise_client.errors import (
    CATEGORY_RANGES,
    ERROR_MESSAGES,
    LOCAL_ERROR_MESSAGES,
    ErrorCategory,
    ErrorCode,
    LedgerSubmissionError,
    LocalErrorCode,
    RaiseError,
    category_for,
    extract_error_code,
    get_error_message,
    is_raise_error,
    parse_error,
    require,
)


class TestErrorCodes:
    def test_codes_are_unique(self):
        values = [code.value for code in ErrorCode]
        assert len(values) == len(set(values))

    def test_every_code_has_a_category(self):
        for code in ErrorCode:
            assert category_for(code) is not None, code.name

    def test_ranges_do_not_overlap(self):
        seen = set()
        for codes in CATEGORY_RANGES.values():
            assert not seen & set(codes)
            seen |= set(codes)

    @pytest.mark.parametrize(
        "code,category",
        [
            (ErrorCode.INVALID_STATE_TRANSITION, ErrorCategory.STATE_TRANSITION),
            (ErrorCode.ALREADY_VOTED, ErrorCategory.AUTHORIZATION),
            (LocalErrorCode.TIER_LOTS_EXHAUSTED, ErrorCategory.INVESTMENT),
            (LocalErrorCode.DEADLINE_EXTENSIONS_EXHAUSTED, ErrorCategory.MILESTONE),
            (LocalErrorCode.VESTING_CLIFF_NOT_REACHED, ErrorCategory.TOKEN_GENERATION),
            (ErrorCode.PIVOT_WINDOW_ENDED, ErrorCategory.PIVOT),
            (LocalErrorCode.EXIT_WINDOW_CLOSED, ErrorCategory.REFUND),
            (ErrorCode.SCAM_ALREADY_REPORTED, ErrorCategory.SCAM_REPORT),
        ],
    )
    def test_categories(self, code, category):
        assert RaiseError(code).category == category

    def test_unassigned_range(self):
        assert category_for(6700) is None

    def test_program_codes(self):
        assert len(ErrorCode) == 45
        assert set(ERROR_MESSAGES) == set(ErrorCode)

    def test_local_codes_outside_program_space(self):
        assert set(LOCAL_ERROR_MESSAGES) == set(LocalErrorCode)
        program = {code.value for code in ErrorCode}
        for code in LocalErrorCode:
            assert code.value not in program
            assert code.value >= 10_000
            assert RaiseError(code).is_local
        assert not RaiseError(ErrorCode.ALREADY_VOTED).is_local

    def test_local_name_and_message(self):
        error = RaiseError(LocalErrorCode.DEADLINE_TOO_SOON)
        assert error.name == "DEADLINE_TOO_SOON"
        assert error.message == LOCAL_ERROR_MESSAGES[LocalErrorCode.DEADLINE_TOO_SOON]


class TestRaiseError:
    def test_default_message(self):
        error = RaiseError(ErrorCode.PROJECT_ALREADY_FUNDED)
        assert error.message == ERROR_MESSAGES[ErrorCode.PROJECT_ALREADY_FUNDED]
        assert error.name == "PROJECT_ALREADY_FUNDED"

    def test_unknown_code(self):
        error = RaiseError(6099)
        assert error.name is None
        assert error.message == "Program error 6099"

    def test_require(self):
        require(True, ErrorCode.ALREADY_VOTED)
        with pytest.raises(RaiseError) as exc:
            require(False, ErrorCode.ALREADY_VOTED)
        assert exc.value.is_code(ErrorCode.ALREADY_VOTED)


class TestParseError:
    def test_anchor_log_line(self):
        error = LedgerSubmissionError(
            "Transaction simulation failed",
            logs=["Program log: AnchorError caused by account: project. Error Number: 6001. Error Message: x."],
        )
        parsed = parse_error(error)
        assert isinstance(parsed, RaiseError)
        assert parsed.code == ErrorCode.PROJECT_NOT_IN_OPEN_STATE
        assert parsed.logs == error.logs

    def test_custom_program_error_hex(self):
        parsed = parse_error(Exception("failed: custom program error: 0x1771"))
        assert isinstance(parsed, RaiseError)
        assert parsed.code == 6001

    def test_explicit_code(self):
        parsed = parse_error(LedgerSubmissionError("rejected", code=6103))
        assert parsed.code == ErrorCode.ALREADY_VOTED

    def test_unnamed_program_code_keeps_ledger_message(self):
        parsed = parse_error(LedgerSubmissionError("Transaction failed: InstructionError(0, Custom(6205))", code=6205))
        assert isinstance(parsed, RaiseError)
        assert parsed.code == 6205
        assert parsed.name is None
        assert parsed.message == "Transaction failed: InstructionError(0, Custom(6205))"

    def test_local_space_never_parsed(self):
        error = LedgerSubmissionError("rejected", code=int(LocalErrorCode.DEADLINE_TOO_SOON))
        assert parse_error(error) is error

    def test_unrecognized_passes_through(self):
        error = LedgerSubmissionError("blockhash not found")
        assert parse_error(error) is error

    def test_raise_error_unchanged(self):
        error = RaiseError(ErrorCode.NOT_INVESTOR)
        assert parse_error(error) is error

    def test_extract_error_code(self):
        assert extract_error_code(["nothing here", "Error Number: 6405."]) == 6405
        assert extract_error_code(["nothing here"]) is None
        assert extract_error_code(["InstructionError(0, Custom(6201))"]) == 6201


class TestMessages:
    def test_get_error_message(self):
        assert get_error_message(RaiseError(ErrorCode.SCAM_NOT_CONFIRMED)) == "Scam has not been confirmed"
        assert get_error_message(Exception("boom")) == "boom"
        assert get_error_message(Exception()) == "An unknown error occurred"

    def test_is_raise_error(self):
        error = RaiseError(ErrorCode.HOLDBACK_ALREADY_RELEASED)
        assert is_raise_error(error)
        assert is_raise_error(error, ErrorCode.HOLDBACK_ALREADY_RELEASED)
        assert not is_raise_error(error, ErrorCode.SCAM_NOT_CONFIRMED)
        assert not is_raise_error(ValueError("x"))
