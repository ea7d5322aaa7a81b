import numpy as np
import pandas as pd
import unittest
import yaml

from metric_multiplier.core.coerce import UnsupportedValueError, multiply, numeric_kind, to_float
from metric_multiplier.core.factors import build_factor_table
from metric_multiplier.core.model import Metric
from metric_multiplier.core.percentage import CpuAccumulator
from metric_multiplier.core.stage import Multiplier, MultiplierOptions


def _metric(name, fields, tags=None, ts="2024-01-01 00:00:00"):
    return Metric(name=name, tags=tags or {"host": "esx1"}, fields=fields,
                  time=pd.Timestamp(ts, tz="UTC"), kind="gauge")


def _stage(*lines, verbose=False):
    diags = []
    stage = Multiplier(MultiplierOptions(config=tuple(lines), verbose=verbose),
                       on_diagnostic=diags.append)
    return stage, diags


class NumericCoercionTests(unittest.TestCase):
    def test_integers_are_truncated_and_keep_their_type(self):
        cases = [
            (np.int32(7), np.int32(3)),
            (np.int64(-7), np.int64(-3)),
            (np.uint32(9), np.uint32(4)),
            (np.uint64(9), np.uint64(4)),
            (7, 3),
        ]
        for value, expected in cases:
            out = multiply(value, 0.5)
            self.assertIs(type(value), type(out))
            self.assertEqual(expected, out)

    def test_floats_keep_precision_class(self):
        out32 = multiply(np.float32(1.5), 2.0)
        self.assertIsInstance(out32, np.float32)
        self.assertEqual(np.float32(3.0), out32)
        self.assertEqual(0.25, multiply(0.5, 0.5))
        self.assertIsInstance(multiply(np.float64(2.0), 3.0), np.float64)

    def test_non_numeric_values_are_rejected(self):
        self.assertIsNone(numeric_kind(True))
        self.assertIsNone(numeric_kind("12"))
        self.assertEqual("uint32", numeric_kind(np.uint32(1)))
        with self.assertRaises(UnsupportedValueError):
            to_float("12")
        with self.assertRaises(UnsupportedValueError):
            multiply(False, 2.0)
        with self.assertRaises(UnsupportedValueError):
            multiply(5, float("inf"))
        with self.assertRaises(UnsupportedValueError):
            to_float(10 ** 400)
        with self.assertRaises(UnsupportedValueError):
            multiply(10 ** 400, 0.5)


class FactorTableTests(unittest.TestCase):
    def test_malformed_line_is_skipped(self):
        diags = []
        table = build_factor_table(["mem used_percent=100", "this is garbage"], report=diags.append)
        self.assertEqual({"mem": {"used_percent": 100.0}}, table)
        self.assertEqual(["decode"], [d.kind for d in diags])
        self.assertEqual("this is garbage", diags[0].metric)

    def test_last_line_wins(self):
        table = build_factor_table(["mem a=2", "mem a=3,b=4i", "swap used_percent=100"])
        self.assertEqual({"mem": {"a": 3.0, "b": 4.0}, "swap": {"used_percent": 100.0}}, table)

    def test_non_numeric_factor_is_ignored(self):
        diags = []
        table = build_factor_table(['disk free=2,label="x"'], report=diags.append)
        self.assertEqual({"disk": {"free": 2.0}}, table)
        self.assertEqual("unsupported_value", diags[0].kind)

    def test_stage_exposes_read_only_table(self):
        stage, _ = _stage("mem used_percent=100")
        self.assertEqual(100.0, stage.factors["mem"]["used_percent"])
        with self.assertRaises(TypeError):
            stage.factors["mem"]["used_percent"] = 1.0


class RescaleTests(unittest.TestCase):
    def test_unmatched_metric_is_returned_as_is(self):
        stage, diags = _stage("mem used_percent=100")
        m = _metric("cpu", {"usage_idle": np.float64(50.0)})
        batch = [m]
        out = stage.apply(batch)
        self.assertIs(batch, out)
        self.assertIs(m, out[0])
        self.assertEqual([], diags)

    def test_factor_is_applied_not_treated_as_noop(self):
        stage, _ = _stage("mem used_percent=100,available_percent=100")
        m = _metric("mem", {"used_percent": np.int64(50), "total": np.uint64(1024)})
        out = stage.apply([m])
        self.assertIsNot(m, out[0])
        self.assertEqual(np.int64(5000), out[0].fields["used_percent"])
        self.assertIsInstance(out[0].fields["used_percent"], np.int64)
        self.assertEqual(np.uint64(1024), out[0].fields["total"])
        # original untouched, other parts carried over
        self.assertEqual(np.int64(50), m.fields["used_percent"])
        self.assertEqual(m.tags, out[0].tags)
        self.assertEqual(m.time, out[0].time)
        self.assertEqual("gauge", out[0].kind)

    def test_string_field_is_left_unchanged(self):
        stage, diags = _stage("disk status=10,used=2")
        m = _metric("disk", {"status": "ok", "used": 3})
        out = stage.apply([m])
        self.assertEqual("ok", out[0].fields["status"])
        self.assertEqual(6, out[0].fields["used"])
        self.assertEqual(1, len(diags))
        self.assertEqual("unsupported_value", diags[0].kind)
        self.assertEqual(("disk", "status", "ok", 10.0),
                         (diags[0].metric, diags[0].field, diags[0].value, diags[0].factor))

    def test_construction_failure_keeps_original(self):
        stage, diags = _stage("mem used_percent=100")
        m = _metric("mem", {"used_percent": np.int64(50), "broken": [1, 2]})
        out = stage.apply([m])
        self.assertIs(m, out[0])
        self.assertEqual(["construct"], [d.kind for d in diags])

    def test_int_too_large_for_float_is_kept(self):
        stage, diags = _stage("mem a=2,b=2")
        huge = 10 ** 400
        batch = [_metric("mem", {"a": huge, "b": 3}), _metric("mem", {"a": 4})]
        out = stage.apply(batch)
        self.assertEqual(huge, out[0].fields["a"])
        self.assertEqual(6, out[0].fields["b"])
        self.assertEqual(8, out[1].fields["a"])
        self.assertEqual(["unsupported_value"], [d.kind for d in diags])
        self.assertEqual(("mem", "a"), (diags[0].metric, diags[0].field))

    def test_verbose_logs_changes(self):
        stage, _ = _stage("mem used_percent=100,free=1", verbose=True)
        m = _metric("mem", {"used_percent": np.int64(50), "free": np.int64(3)})
        with self.assertLogs("metric_multiplier.core.rescale", level="INFO") as logs:
            stage.apply([m])
        self.assertEqual(1, len(logs.output))
        self.assertIn("[mem.used_percent] 50 * 100.0 => 5000", logs.output[0])


class CpuPercentageTests(unittest.TestCase):
    def test_capacity_and_usage_across_records(self):
        stage, _ = _stage()
        batch = [
            _metric("vsphere_host_cpu", {"totalmhz_average": np.int64(2000)}),
            _metric("vsphere_host_cpu", {"effectivecpu_average": np.int64(500), "usage": 1.0}),
        ]
        capacity_metric = batch[0]
        out = stage.apply(batch)
        self.assertIs(capacity_metric, out[0])
        self.assertEqual(25, out[1].fields["effectivecpu_average"])
        self.assertIs(int, type(out[1].fields["effectivecpu_average"]))
        self.assertEqual(1.0, out[1].fields["usage"])

    def test_state_carries_into_next_batch(self):
        stage, _ = _stage()
        stage.apply([_metric("vsphere_host_cpu", {"totalmhz_average": np.int64(2000),
                                                  "effectivecpu_average": np.int64(500)})])
        out = stage.apply([_metric("vsphere_vm_cpu", {"effectivecpu_average": np.int64(1000)})])
        self.assertEqual(50, out[0].fields["effectivecpu_average"])

    def test_zero_capacity_leaves_usage_alone(self):
        stage, _ = _stage()
        m = _metric("vsphere_host_cpu", {"effectivecpu_average": np.int64(500)})
        out = stage.apply([m])
        self.assertIs(m, out[0])
        self.assertEqual(np.int64(500), out[0].fields["effectivecpu_average"])

    def test_accumulators_read_values_before_rescale(self):
        stage, _ = _stage("vsphere_host_cpu totalmhz_average=0.5")
        batch = [
            _metric("vsphere_host_cpu", {"totalmhz_average": np.float64(2000.0)}),
            _metric("vsphere_vm_cpu", {"effectivecpu_average": np.float64(500.0)}),
        ]
        out = stage.apply(batch)
        self.assertEqual(1000.0, out[0].fields["totalmhz_average"])
        self.assertEqual(2000.0, stage.accumulator.capacity)
        self.assertEqual(25, out[1].fields["effectivecpu_average"])

    def test_instances_do_not_share_state(self):
        a, _ = _stage()
        b, _ = _stage()
        a.apply([_metric("h", {"totalmhz_average": np.int64(2000)})])
        m = _metric("h", {"effectivecpu_average": np.int64(500)})
        self.assertIs(m, b.apply([m])[0])
        self.assertEqual(0.0, b.accumulator.capacity)

    def test_percentage_truncates_toward_zero(self):
        self.assertEqual(-333, CpuAccumulator(capacity=3.0, usage=-10.0).percentage())
        self.assertEqual(33, CpuAccumulator(capacity=3.0, usage=1.0).percentage())
        self.assertIsNone(CpuAccumulator(capacity=0.0, usage=10.0).percentage())

    def test_non_numeric_reading_resets_accumulator(self):
        diags = []
        acc = CpuAccumulator(capacity=2000.0)
        acc.observe(_metric("h", {"totalmhz_average": "n/a"}), diags.append)
        self.assertEqual(0.0, acc.capacity)
        self.assertEqual("unsupported_value", diags[0].kind)

    def test_int_too_large_for_float_resets_accumulator(self):
        stage, diags = _stage()
        stage.accumulator.capacity = 2000.0
        m = _metric("h", {"totalmhz_average": 10 ** 400})
        other = _metric("h", {"usage": 1.0})
        out = stage.apply([m, other])
        self.assertIs(m, out[0])
        self.assertIs(other, out[1])
        self.assertEqual(0.0, stage.accumulator.capacity)
        self.assertEqual(["unsupported_value"], [d.kind for d in diags])

    def test_rewrite_failure_keeps_previous_result(self):
        stage, diags = _stage()
        m = _metric("vsphere_host_cpu", {"totalmhz_average": np.int64(2000),
                                         "effectivecpu_average": np.int64(500),
                                         "broken": [1, 2]})
        out = stage.apply([m])
        self.assertIs(m, out[0])
        self.assertEqual(np.int64(500), out[0].fields["effectivecpu_average"])
        self.assertEqual(25, stage.accumulator.percentage())
        self.assertEqual(["construct"], [d.kind for d in diags])
        self.assertEqual("effectivecpu_average", diags[0].field)


class StageMetadataTests(unittest.TestCase):
    def test_sample_config_round_trips_into_options(self):
        stage = Multiplier()
        self.assertTrue(stage.description())
        opts = MultiplierOptions.from_config(yaml.safe_load(stage.sample_config()))
        self.assertEqual(("mem used_percent=100,available_percent=100", "swap used_percent=100"),
                         opts.config)
        self.assertFalse(opts.verbose)
        self.assertEqual({"mem", "swap"}, set(Multiplier(opts).factors))

    def test_missing_block_gives_empty_options(self):
        self.assertEqual(MultiplierOptions(), MultiplierOptions.from_config({}))
        self.assertEqual(MultiplierOptions(), MultiplierOptions.from_config(None))
