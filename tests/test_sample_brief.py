"""Tests for per-accumulator sample briefs."""

import threading

import pytest

from brokermetrics.sample_brief import ItemSampleBrief, StatisticsItemSampleBrief
from brokermetrics.statistics import StatisticsItem


def test_reset_brief_reports_zeros():
    brief = ItemSampleBrief()
    brief.sample(7)
    brief.reset()
    assert brief.get_max() == 0
    assert brief.get_min() == 0
    assert brief.get_avg() == 0
    assert brief.get_count() == 0


def test_single_sample():
    brief = ItemSampleBrief()
    brief.sample(42)
    assert brief.get_max() == 42
    assert brief.get_min() == 42
    assert brief.get_avg() == 42


def test_first_sample_lowers_min_even_when_large():
    brief = ItemSampleBrief()
    brief.sample(10 ** 12)
    brief.sample(10 ** 13)
    assert brief.get_min() == 10 ** 12
    assert brief.get_total() == 11 * 10 ** 12


def test_zero_sample_is_distinct_from_no_data():
    brief = ItemSampleBrief()
    brief.sample(0)
    brief.sample(4)
    assert brief.get_min() == 0
    assert brief.get_count() == 2
    assert brief.get_avg() == pytest.approx(2.0)


def test_statistics_sample_brief_folds_deltas():
    item = StatisticsItem("TOPIC_PUT", "orders", ["msgs", "bytes"])
    item.inc_items(100, 100)
    brief = StatisticsItemSampleBrief(item, ["msgs"])

    item.inc_items(3, 30)
    brief.sample(item.snapshot())
    item.inc_items(7, 70)
    brief.sample(item.snapshot())
    brief.sample(item.snapshot())

    msgs = brief.brief("msgs")
    assert msgs.get_count() == 3
    assert msgs.get_max() == 7
    assert msgs.get_min() == 0
    assert msgs.get_total() == 10
    assert brief.format() == "|7|3.33"


def test_sample_none_is_ignored():
    item = StatisticsItem("K", "o", ["a"])
    brief = StatisticsItemSampleBrief(item, ["a"])
    brief.sample(None)
    assert brief.brief("a").get_count() == 0


def test_reset_keeps_baseline():
    item = StatisticsItem("K", "o", ["a"])
    brief = StatisticsItemSampleBrief(item, ["a"])
    item.inc_items(5)
    brief.sample(item.snapshot())
    brief.reset()
    assert brief.format() == "|0|0.00"
    item.inc_items(2)
    brief.sample(item.snapshot())
    assert brief.brief("a").get_max() == 2


def test_unknown_sample_name_rejected():
    item = StatisticsItem("K", "o", ["a"])
    with pytest.raises(ValueError):
        StatisticsItemSampleBrief(item, ["b"])


def test_format_never_mixes_a_fold_and_a_reset():
    item = StatisticsItem("TOPIC_PUT", "orders", ["msgs"])
    sample_brief = StatisticsItemSampleBrief(item, ["msgs"])
    done = threading.Event()
    rendered = []

    def fold_and_reset():
        for i in range(1, 3000):
            item.inc_items(i)
            sample_brief.sample(item.snapshot())
            if i % 7 == 0:
                sample_brief.reset()
        done.set()

    writer = threading.Thread(target=fold_and_reset)
    writer.start()
    while not done.is_set():
        rendered.append(sample_brief.format())
    writer.join()

    for text in rendered:
        _, highest, avg = text.split("|")
        assert float(avg) <= int(highest)
        assert (int(highest) == 0) == (float(avg) == 0)
