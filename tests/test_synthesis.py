import unittest
from datetime import datetime, timedelta, timezone

from gpxtotal import metrics
from gpxtotal.aggregator import Aggregator
from gpxtotal.model import Layer, TracePoint
from gpxtotal.synthesis import TemporalSynthesizer, travel_duration
from gpxtotal.trace import Trace

BASE = datetime(2021, 5, 1, 8, 0, tzinfo=timezone.utc)
MS = timedelta(milliseconds=1)


def make_trace(name, count, start=None, lat=45.0, lon=7.0, step_s=10):
    points = []
    for k in range(count):
        time = start + timedelta(seconds=step_s * k) if start is not None else None
        points.append(TracePoint(lat, lon + 0.001 * k, ele=100.0, time=time))
    return Trace(name, layers=[Layer(points=points)])


def all_times(aggregator):
    return [p.time for trace in aggregator.traces for p in trace.get_points()]


class TravelDurationTests(unittest.TestCase):
    def test_duration(self):
        self.assertEqual(travel_duration(10000, 10), timedelta(hours=1))
        self.assertEqual(travel_duration(500, 0), timedelta(0))
        self.assertEqual(travel_duration(500, -3), timedelta(0))


class MergeOrderingTests(unittest.TestCase):
    def test_overlapping_trace_shifted_after_predecessor(self):
        aggregator = Aggregator()
        first = aggregator.append_trace(make_trace("first", 10, start=BASE))
        # starts 30s into the first trace, slightly further east
        second = aggregator.append_trace(make_trace("second", 10, start=BASE + timedelta(seconds=30), lon=7.02))
        speed = aggregator.moving_speed(no_conversion=True)

        aggregator.render(True, True, False, False, False)

        first_end = first.get_points()[-1].time
        second_start = second.get_points()[0].time
        self.assertEqual(first_end, BASE + timedelta(seconds=90))
        self.assertGreaterEqual(second_start, first_end)
        times = all_times(aggregator)
        self.assertEqual(times, sorted(times))

        # the shift covers the gap between the traces at the reference speed
        gap = metrics.distance_2d(first.get_points()[-1], second.get_points()[0])
        expected = first_end + travel_duration(gap, speed)
        self.assertLess(abs(second_start - expected), MS)

    def test_ordered_traces_untouched(self):
        aggregator = Aggregator()
        aggregator.append_trace(make_trace("first", 5, start=BASE))
        aggregator.append_trace(make_trace("second", 5, start=BASE + timedelta(hours=1)))
        before = all_times(aggregator)
        aggregator.render(True, True, False, False, False)
        self.assertEqual(all_times(aggregator), before)

    def test_overlap_kept_when_not_merging(self):
        aggregator = Aggregator()
        aggregator.append_trace(make_trace("first", 10, start=BASE))
        second = aggregator.append_trace(make_trace("second", 10, start=BASE + timedelta(seconds=30)))
        aggregator.render(False, True, False, False, False)
        self.assertEqual(second.get_points()[0].time, BASE + timedelta(seconds=30))


class UntimedSynthesisTests(unittest.TestCase):
    def test_untimed_after_timed_starts_at_predecessor_end(self):
        aggregator = Aggregator()
        first = aggregator.append_trace(make_trace("first", 10, start=BASE))
        second = aggregator.append_trace(make_trace("second", 10, lon=7.05))

        aggregator.render(False, True, False, False, False)

        self.assertNotEqual(second.first_time_data(), -1)
        # separate files: no gap distance between the traces
        self.assertEqual(second.get_points()[0].time, first.get_points()[-1].time)
        times = [p.time for p in second.get_points()]
        self.assertEqual(times, sorted(times))

    def test_untimed_after_timed_merged_includes_gap(self):
        aggregator = Aggregator()
        first = aggregator.append_trace(make_trace("first", 10, start=BASE))
        second = aggregator.append_trace(make_trace("second", 10, lon=7.05))
        speed = aggregator.moving_speed(no_conversion=True)

        aggregator.render(True, True, False, False, False)

        gap = metrics.distance_2d(first.get_points()[-1], second.get_points()[0])
        expected = first.get_points()[-1].time + travel_duration(gap, speed)
        self.assertGreater(gap, 0)
        self.assertLess(abs(second.get_points()[0].time - expected), MS)

    def test_untimed_first_trace_ends_where_next_begins(self):
        aggregator = Aggregator()
        first = aggregator.append_trace(make_trace("first", 10))
        second = aggregator.append_trace(make_trace("second", 10, start=BASE, lon=7.05))

        aggregator.render(False, True, False, False, False)

        self.assertLess(abs(first.get_points()[-1].time - BASE), MS)
        self.assertLess(first.get_points()[0].time, BASE)
        self.assertEqual(second.get_points()[0].time, BASE)

    def test_forward_lookahead_counts_untimed_traces(self):
        aggregator = Aggregator()
        first = aggregator.append_trace(make_trace("first", 5))
        middle = aggregator.append_trace(make_trace("middle", 5, lon=7.01))
        aggregator.append_trace(make_trace("last", 5, start=BASE, lon=7.02))
        speed = aggregator.moving_speed(no_conversion=True)

        aggregator.render(True, True, False, False, False)

        distance = (
            first.get_distance(no_conversion=True)
            + metrics.distance_2d(first.get_points()[-1], middle.get_points()[0])
            + middle.get_distance(no_conversion=True)
            + metrics.distance_2d(middle.get_points()[-1], aggregator.traces[2].get_points()[0])
        )
        expected_start = BASE - travel_duration(distance, speed)
        self.assertLess(abs(first.get_points()[0].time - expected_start), MS)
        times = all_times(aggregator)
        self.assertEqual(times, sorted(times))

    def test_no_synthesis_for_single_trace_export(self):
        aggregator = Aggregator()
        aggregator.append_trace(make_trace("first", 5, start=BASE))
        second = aggregator.append_trace(make_trace("second", 5))
        documents = aggregator.render(True, True, False, False, False, single_trace_index=1)
        self.assertEqual(second.first_time_data(), -1)
        self.assertNotIn("<time>", documents[0]["text"])

    def test_no_synthesis_without_moving_time(self):
        aggregator = Aggregator()
        first = aggregator.append_trace(make_trace("first", 5))
        aggregator.render(True, True, False, False, False)
        self.assertEqual(first.first_time_data(), -1)

    def test_no_synthesis_without_time_inclusion(self):
        aggregator = Aggregator()
        aggregator.append_trace(make_trace("first", 5, start=BASE))
        second = aggregator.append_trace(make_trace("second", 5))
        aggregator.render(True, False, False, False, False)
        self.assertEqual(second.first_time_data(), -1)

    def test_unanchored_trace_uses_clock(self):
        now = datetime(2022, 1, 1, tzinfo=timezone.utc)
        trace = make_trace("alone", 3)
        TemporalSynthesizer([trace], merge_all=False, reference_speed=20.0, now=lambda: now).run()
        self.assertEqual(trace.get_points()[0].time, now)

    def test_empty_trace_skipped(self):
        empty = Trace("empty", layers=[Layer(points=None)])
        timed = make_trace("timed", 5, start=BASE)
        untimed = make_trace("untimed", 5, lon=7.05)
        TemporalSynthesizer([timed, empty, untimed], merge_all=False, reference_speed=20.0).run()
        self.assertEqual(untimed.get_points()[0].time, timed.get_points()[-1].time)



class NaiveTimestampTests(unittest.TestCase):
    def test_merged_render_with_naive_timestamps(self):
        naive_base = BASE.replace(tzinfo=None)
        aggregator = Aggregator()
        aggregator.append_trace(make_trace("first", 10, start=naive_base))
        middle = aggregator.append_trace(make_trace("middle", 10, lon=7.05))
        aggregator.append_trace(make_trace("last", 10, start=naive_base + timedelta(hours=1), lon=7.1))

        aggregator.render(True, True, False, False, False)

        times = all_times(aggregator)
        self.assertTrue(all(t.tzinfo is not None for t in times))
        self.assertEqual(times, sorted(times))
        self.assertEqual(times[0], BASE)
        self.assertGreater(middle.get_points()[0].time, BASE + timedelta(seconds=90))
        self.assertEqual(times[-1], BASE + timedelta(hours=1, seconds=90))

    def test_naive_overlap_shifted(self):
        naive_base = BASE.replace(tzinfo=None)
        first = make_trace("first", 10, start=naive_base)
        second = make_trace("second", 10, start=naive_base + timedelta(seconds=30), lon=7.02)
        TemporalSynthesizer([first, second], merge_all=True, reference_speed=20.0).run()
        self.assertGreaterEqual(second.get_points()[0].time, BASE + timedelta(seconds=90))


if __name__ == "__main__":
    unittest.main()
