from io import BytesIO

import pytest
from wfedit.containers.alignment import Alignment
from wfedit.io import (
    CheckReport, ResultIOError, ResultFormatError, VerificationError,
    write_result, read_result, compare_result, check_result, verify_result
)

ALN = Alignment(1, b'MMDM', 4, 3)


class TestWrite:
    def test_to_path(self, tmp_path):
        path = tmp_path / 'result.txt'
        write_result(ALN, path)
        assert path.read_bytes() == b'1\nMMDM'

    def test_to_handle(self):
        handle = BytesIO()
        write_result(ALN, handle)
        assert handle.getvalue() == b'1\nMMDM'

    def test_empty_script(self, tmp_path):
        path = tmp_path / 'result.txt'
        write_result(Alignment(0, b'', 0, 0), path)
        assert path.read_bytes() == b'0\n'

    def test_unwritable(self, tmp_path):
        with pytest.raises(ResultIOError, match="Error while writing result file"):
            write_result(ALN, tmp_path / 'missing' / 'result.txt')


class TestRead:
    def test_round_trip(self, tmp_path):
        path = tmp_path / 'result.txt'
        write_result(ALN, path)
        assert read_result(path) == (1, b'MMDM')

    def test_script_stops_at_newline(self):
        assert read_result(BytesIO(b'2\nMXM\ntrailing')) == (2, b'MXM')

    def test_missing(self, tmp_path):
        with pytest.raises(ResultIOError, match="Error while opening check file"):
            read_result(tmp_path / 'missing.txt')

    def test_bad_score(self):
        with pytest.raises(ResultFormatError, match="reference score"):
            read_result(BytesIO(b'one\nMMDM'))

    def test_format_error_is_io_error(self):
        with pytest.raises(ResultIOError):
            read_result(BytesIO(b''))


class TestCompare:
    def test_pass(self):
        report = compare_result(ALN, 1, b'MMDM')
        assert report
        assert report.passed
        assert report.describe() == 'Check passed'

    def test_score(self):
        report = compare_result(ALN, 2, b'MMDM')
        assert not report
        assert (report.kind, report.position, report.expected, report.actual) == ('score', None, 2, 1)
        assert report.describe() == 'Reference score != result score (reference 2, result 1)'

    def test_first_divergence(self):
        report = compare_result(ALN, 1, b'MMMD')
        assert (report.kind, report.position, report.expected, report.actual) == ('script', 2, b'M', b'D')
        assert 'at position 2' in report.describe()

    def test_length(self):
        report = compare_result(ALN, 1, b'MMD')
        assert (report.kind, report.position, report.expected, report.actual) == ('length', 3, 3, 4)
        assert report.describe().startswith('Reference script length != result script length')

    def test_default_report_passes(self):
        assert CheckReport()


class TestCheck:
    def test_check_file(self, tmp_path):
        path = tmp_path / 'reference.txt'
        path.write_bytes(b'1\nMMDM')
        assert check_result(ALN, path)
        path.write_bytes(b'1\nMMXM')
        assert check_result(ALN, str(path)).position == 2

    def test_verify(self):
        assert verify_result(ALN, BytesIO(b'1\nMMDM'))
        with pytest.raises(VerificationError, match="Reference score") as info:
            verify_result(ALN, BytesIO(b'3\nMMDM'))
        assert info.value.report.kind == 'score'
