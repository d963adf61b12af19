import unittest

from gpxtotal.aggregator import (
    AggregateFocus,
    Aggregator,
    FocusListener,
    RenderInProgressError,
    TraceFocus,
)
from gpxtotal.model import Layer, TracePoint
from gpxtotal.trace import Trace


class StubTrace(Trace):
    """Trace with fixed metrics for aggregation tests."""

    def __init__(self, name, distance=0.0, moving_distance=0.0, elevation=0.0,
                 moving_time=0, averages=None, color=None):
        super().__init__(name, layers=[Layer(points=[TracePoint(45.0, 7.0)])], color=color)
        self._distance = distance
        self._moving_distance = moving_distance
        self._elevation = elevation
        self._moving_time = moving_time
        self._averages = averages or {"hr": None, "atemp": None, "cad": None}

    def get_distance(self, no_conversion=False):
        return self._distance

    def get_moving_distance(self, no_conversion=False):
        return self._moving_distance

    def get_elevation(self):
        return self._elevation

    def get_moving_time(self):
        return self._moving_time

    def get_average_additional_data(self):
        self.additional_avg_data = dict(self._averages)
        return self.additional_avg_data


class RecordingListener(FocusListener):
    def __init__(self):
        self.events = []

    def on_focus_exit(self, state):
        self.events.append(("exit", state))

    def on_focus_enter(self, state):
        self.events.append(("enter", state))

    def on_combine_available(self, available):
        self.events.append(("combine", available))


def _indices(aggregator):
    return [trace.index for trace in aggregator.traces]


class AggregateMetricTests(unittest.TestCase):
    def test_totals_are_sums(self):
        aggregator = Aggregator()
        aggregator.append_trace(StubTrace("a", distance=1000.5, elevation=12.0, moving_time=60000))
        aggregator.append_trace(StubTrace("b", distance=2500.25, elevation=30.5, moving_time=120000))
        aggregator.append_trace(StubTrace("c", distance=0.0, elevation=0.0, moving_time=0))

        self.assertAlmostEqual(aggregator.distance(), 3500.75)
        self.assertAlmostEqual(aggregator.elevation(), 42.5)
        self.assertEqual(aggregator.moving_time(), 180000)

    def test_speed_and_pace(self):
        aggregator = Aggregator()
        aggregator.append_trace(StubTrace("a", moving_distance=10000.0, moving_time=3600000))
        self.assertAlmostEqual(aggregator.moving_speed(), 10.0)
        self.assertAlmostEqual(aggregator.moving_pace(), 360000.0)

    def test_division_safety(self):
        empty = Aggregator()
        self.assertEqual(empty.moving_speed(), 0)
        self.assertEqual(empty.moving_pace(), 0)

        aggregator = Aggregator()
        aggregator.append_trace(StubTrace("a", moving_distance=5000.0, moving_time=0))
        self.assertEqual(aggregator.moving_speed(), 0)

        aggregator = Aggregator()
        aggregator.append_trace(StubTrace("a", moving_distance=0.0, moving_time=5000))
        self.assertEqual(aggregator.moving_pace(), 0)

    def test_weighted_sensor_average(self):
        aggregator = Aggregator()
        aggregator.append_trace(StubTrace(
            "a", moving_time=1000, averages={"hr": 100, "atemp": 0.0, "cad": None}))
        aggregator.append_trace(StubTrace(
            "b", moving_time=3000, averages={"hr": 200, "atemp": None, "cad": None}))

        averages = aggregator.average_additional_data()
        self.assertEqual(averages["hr"], 175.0)
        # a real zero reading is kept, a missing sensor is None
        self.assertEqual(averages["atemp"], 0.0)
        self.assertIsNone(averages["cad"])
        self.assertIs(aggregator.additional_avg_data, averages)

    def test_sensor_average_rounds_to_one_decimal(self):
        aggregator = Aggregator()
        aggregator.append_trace(StubTrace("a", moving_time=1000, averages={"hr": 100, "atemp": None, "cad": 80}))
        aggregator.append_trace(StubTrace("b", moving_time=2000, averages={"hr": 101, "atemp": None, "cad": 81}))
        averages = aggregator.average_additional_data()
        self.assertEqual(averages["hr"], 100.7)
        self.assertEqual(averages["cad"], 80.7)


class CollectionTests(unittest.TestCase):
    def _aggregator(self, count, listener=None):
        aggregator = Aggregator(listener=listener)
        for i in range(count):
            aggregator.append_trace(StubTrace(f"t{i}"))
        return aggregator

    def test_index_contiguity_after_mutations(self):
        aggregator = self._aggregator(5)
        aggregator.remove_trace(1)
        aggregator.swap_traces(0, 3)
        aggregator.append_trace(StubTrace("extra"))
        aggregator.remove_trace(4)
        aggregator.swap_traces(2, 1)
        aggregator.remove_trace(0)

        self.assertEqual(_indices(aggregator), list(range(len(aggregator.traces))))
        for position, trace in enumerate(aggregator.traces):
            self.assertEqual(trace.index, position)

    def test_remove_refocuses_previous_trace(self):
        aggregator = self._aggregator(3)
        aggregator.focus_trace(2)
        aggregator.remove_trace(2)
        self.assertEqual(aggregator.focus, TraceFocus(1))
        self.assertEqual(aggregator.focused_trace.name, "t1")

    def test_remove_first_returns_to_aggregate(self):
        aggregator = self._aggregator(3)
        aggregator.focus_trace(1)
        aggregator.remove_trace(0)
        self.assertEqual(aggregator.focus, AggregateFocus())
        self.assertTrue(aggregator.has_focus)
        self.assertEqual([t.name for t in aggregator.traces], ["t1", "t2"])

    def test_swap_focus_follows_trace(self):
        aggregator = self._aggregator(3)
        aggregator.focus_trace(0)
        aggregator.swap_traces(0, 2)
        self.assertEqual(aggregator.focus, TraceFocus(2))
        self.assertEqual(aggregator.focused_trace.name, "t0")

        aggregator.swap_traces(1, 2)
        self.assertEqual(aggregator.focus, TraceFocus(1))
        self.assertEqual(aggregator.focused_trace.name, "t0")

    def test_clear(self):
        aggregator = self._aggregator(3)
        aggregator.focus_trace(1)
        aggregator.clear()
        self.assertEqual(aggregator.traces, [])
        self.assertEqual(aggregator.focus, AggregateFocus())
        self.assertTrue(all(count == 0 for count in aggregator.colors.counts().values()))

    def test_focus_notifications(self):
        listener = RecordingListener()
        aggregator = self._aggregator(2, listener=listener)
        listener.events.clear()

        aggregator.focus_trace(1)
        aggregator.update_focus()
        self.assertEqual(listener.events, [
            ("exit", AggregateFocus()),
            ("enter", TraceFocus(1)),
            ("exit", TraceFocus(1)),
            ("enter", AggregateFocus()),
        ])

        listener.events.clear()
        aggregator.update_focus()
        self.assertEqual(listener.events, [])

    def test_focus_trace_out_of_range(self):
        aggregator = self._aggregator(1)
        with self.assertRaises(IndexError):
            aggregator.focus_trace(3)

    def test_combine_availability(self):
        listener = RecordingListener()
        aggregator = self._aggregator(1, listener=listener)
        self.assertFalse(aggregator.combine_enabled)

        aggregator.append_trace(StubTrace("second"))
        self.assertTrue(aggregator.combine_enabled)
        aggregator.remove_trace(1)
        self.assertFalse(aggregator.combine_enabled)
        combine_events = [event for event in listener.events if event[0] == "combine"]
        self.assertEqual(combine_events, [("combine", True), ("combine", False)])

    def test_colors_issued_and_released(self):
        aggregator = Aggregator(palette=["red", "green"])
        a = aggregator.append_trace(StubTrace("a"))
        b = aggregator.append_trace(StubTrace("b"))
        self.assertEqual((a.normal_style.color, b.normal_style.color), ("red", "green"))
        self.assertFalse(a.set_color)

        aggregator.remove_trace(0)
        c = aggregator.append_trace(StubTrace("c"))
        self.assertEqual(c.normal_style.color, "red")

    def test_file_color_is_claimed(self):
        aggregator = Aggregator(palette=["red", "green"])
        trace = aggregator.append_trace(StubTrace("a", color="red"))
        self.assertTrue(trace.set_color)
        self.assertEqual(aggregator.colors.counts(), {"red": 1, "green": 0})

    def test_recolor(self):
        aggregator = Aggregator(palette=["red", "green", "blue"])
        aggregator.append_trace(StubTrace("a"))
        aggregator.recolor_trace(0, "blue")
        trace = aggregator.traces[0]
        self.assertTrue(trace.set_color)
        self.assertEqual(trace.normal_style.color, "blue")
        self.assertEqual(aggregator.colors.counts(), {"red": 0, "green": 0, "blue": 1})

    def test_set_units_propagates(self):
        aggregator = self._aggregator(2)
        aggregator.set_units(False)
        self.assertFalse(aggregator.metric)
        self.assertTrue(all(not trace.metric for trace in aggregator.traces))


class ReentrantTrace(StubTrace):
    def __init__(self, name, aggregator):
        super().__init__(name)
        self.aggregator = aggregator
        self.error = None

    def get_layers(self):
        try:
            self.aggregator.render(False, False, False, False, False)
        except RenderInProgressError as exc:
            self.error = exc
        return super().get_layers()


class RenderGuardTests(unittest.TestCase):
    def test_reentrant_render_rejected(self):
        aggregator = Aggregator()
        trace = aggregator.append_trace(ReentrantTrace("a", aggregator))
        documents = aggregator.render(False, False, False, False, False)
        self.assertIsInstance(trace.error, RenderInProgressError)
        self.assertEqual(len(documents), 1)

        # the guard is released once render returns
        aggregator.traces[0] = StubTrace("plain")
        self.assertEqual(len(aggregator.render(False, False, False, False, False)), 1)


if __name__ == "__main__":
    unittest.main()
