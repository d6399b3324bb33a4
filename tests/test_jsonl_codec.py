import io
import json
import pathlib
import sys
import unittest

import numpy as np

ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from dmxscope.core.models import RecordingSession, UniverseKey  # noqa: E402
from dmxscope.dataio import jsonl_codec  # noqa: E402
from dmxscope.errors import RecordingFormatError  # noqa: E402

HEADER = '{"format":"artnet-jsonl","version":1}'


def _frame_line(t_ms, values, net=0, subnet=0, universe=0, **extra):
    payload = {"t_ms": t_ms, "net": net, "subnet": subnet, "universe": universe, "values": values}
    payload.update(extra)
    return json.dumps(payload)


def _session():
    return RecordingSession(
        channels=(1, 2, 512),
        timestamps_ms=np.array([0, 25, 26, 1000]),
        values={
            1: np.array([0, 255, 17, 3]),
            2: np.array([9, 9, 9, 9]),
            512: np.array([1, 2, 3, 4]),
        },
        addresses=np.array([[0, 0, 1], [0, 0, 1], [3, 4, 5], [127, 15, 15]]),
    )


class JsonlCodecTest(unittest.TestCase):
    def test_round_trip_is_exact(self):
        original = _session()
        buffer = io.StringIO()
        jsonl_codec.encode(original, buffer)
        buffer.seek(0)

        decoded = jsonl_codec.decode(buffer)

        self.assertEqual(decoded.channels, original.channels)
        np.testing.assert_array_equal(decoded.timestamps_ms, original.timestamps_ms)
        for ch in original.channels:
            np.testing.assert_array_equal(decoded.values[ch], original.values[ch])
        np.testing.assert_array_equal(decoded.addresses, original.addresses)

    def test_partial_recording_is_written_full_width(self):
        session = RecordingSession(
            channels=(3,),
            timestamps_ms=np.array([40, 60]),
            values={3: np.array([9, 10])},
        )
        lines = list(jsonl_codec.iter_encoded_lines(session, UniverseKey(1, 2, 3)))

        header = json.loads(lines[0])
        self.assertEqual(header["recorded_channels"], [3])
        first = json.loads(lines[1])
        self.assertEqual(first["t_ms"], 0)
        self.assertEqual((first["net"], first["subnet"], first["universe"]), (1, 2, 3))
        self.assertEqual(first["length"], 512)
        self.assertEqual(len(first["values"]), 512)
        self.assertEqual(first["values"][2], 9)
        self.assertEqual(sum(first["values"]), 9)
        self.assertEqual(json.loads(lines[2])["t_ms"], 20)

    def test_header_without_recorded_channels_reads_all(self):
        lines = [HEADER, _frame_line(0, [1, 2, 3])]
        session = jsonl_codec.decode(lines)
        self.assertEqual(len(session.channels), 512)
        self.assertEqual(session.values[2].tolist(), [2])
        self.assertEqual(session.values[4].tolist(), [0])

    def test_compact_channels_header(self):
        lines = [
            '{"format":"artnet-jsonl","version":1,"channels":[5,7]}',
            _frame_line(0, [100, 200], universe=2),
            _frame_line(44, [101, 201], universe=2),
        ]
        session = jsonl_codec.decode(lines)
        self.assertEqual(session.channels, (5, 7))
        self.assertEqual(session.values[5].tolist(), [100, 101])
        self.assertEqual(session.values[7].tolist(), [200, 201])
        self.assertEqual(session.address_at(1), UniverseKey(0, 0, 2))

    def test_blank_lines_are_skipped(self):
        lines = [HEADER, "", _frame_line(0, [1]), "   ", _frame_line(5, [2])]
        self.assertEqual(jsonl_codec.decode(lines).frame_count, 2)

    def test_malformed_line_fails_the_whole_load(self):
        lines = [HEADER, _frame_line(0, [1]), "{not json", _frame_line(10, [2])]
        with self.assertRaises(RecordingFormatError) as ctx:
            jsonl_codec.decode(lines)
        self.assertEqual(ctx.exception.line, 3)

    def test_invalid_frames_are_rejected(self):
        bad_lines = [
            _frame_line(0, [256]),
            _frame_line(0, [-1]),
            _frame_line(0, [True]),
            _frame_line(0, [1.5]),
            _frame_line(-5, [1]),
            _frame_line(0, [1], net=128),
            _frame_line(0, [1], universe=16),
            _frame_line(0, [0] * 513),
            json.dumps({"t_ms": 0, "net": 0, "subnet": 0, "universe": 0}),
            json.dumps({"net": 0, "subnet": 0, "universe": 0, "values": []}),
            "[1, 2, 3]",
        ]
        for line in bad_lines:
            with self.subTest(line=line[:40]):
                with self.assertRaises(RecordingFormatError):
                    jsonl_codec.decode([HEADER, line])

    def test_decreasing_timestamps_are_rejected(self):
        lines = [HEADER, _frame_line(10, [1]), _frame_line(5, [1])]
        with self.assertRaises(RecordingFormatError):
            jsonl_codec.decode(lines)

    def test_bad_headers(self):
        for header in ("", "not json", "[]", '{"format":"other","version":1}', '{"format":"artnet-jsonl","version":2}'):
            with self.subTest(header=header):
                with self.assertRaises(RecordingFormatError):
                    jsonl_codec.decode([header])

    def test_empty_recording_has_header_only(self):
        buffer = io.StringIO()
        jsonl_codec.encode(RecordingSession(channels=(1,)), buffer)
        self.assertEqual(buffer.getvalue().count("\n"), 1)
        buffer.seek(0)
        decoded = jsonl_codec.decode(buffer)
        self.assertEqual(decoded.frame_count, 0)
        self.assertEqual(decoded.channels, (1,))


if __name__ == "__main__":
    unittest.main()
