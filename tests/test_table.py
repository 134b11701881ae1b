"""Tests for the ProcessTable."""

import pytest

from procmon.counters import ListingError
from procmon.models import ProcessSample, ProcessTableEntry
from procmon.table import ProcessTable, rank_entries

# With these, one tick of process CPU time is 1%
TICK_DELTA = 10
TICKS_PER_SECOND = 10


def percents(rows):
    return {row.pid: row.cpu_percent for row in rows}


class TestRefresh:
    """Tests for ProcessTable.refresh()."""

    def test_first_observation_is_zero(self, source):
        """Test a new PID gets 0% no matter how many ticks it has accumulated."""
        source.set_process(1, "init", ticks=999_999)
        table = ProcessTable(source)

        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert percents(rows) == {1: 0.0}

    def test_rate_from_delta_of_same_pid(self, source):
        """Test CPU% is delta ticks / (system tick delta * ticks per second) * 100."""
        source.set_process(1, "worker", ticks=100)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        source.set_process(1, "worker", ticks=150)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert percents(rows) == {1: 50.0}

    def test_rate_clamped_to_100(self, source):
        """Test a delta larger than the interval is clamped."""
        source.set_process(1, "worker", ticks=0)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        source.set_process(1, "worker", ticks=500)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert percents(rows) == {1: 100.0}

    def test_decreasing_ticks_is_zero(self, source):
        """Test a counter reset yields 0%, never a negative rate."""
        source.set_process(1, "worker", ticks=500)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        source.set_process(1, "worker", ticks=20)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert percents(rows) == {1: 0.0}

    def test_zero_system_delta_is_zero(self, source):
        """Test no elapsed system ticks cannot divide by zero."""
        source.set_process(1, "worker", ticks=0)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        source.set_process(1, "worker", ticks=50)
        rows = table.refresh(0, TICKS_PER_SECOND)

        assert percents(rows) == {1: 0.0}

    def test_pid_reused_by_other_command(self, source):
        """Test a PID that now belongs to a different command starts from 0%."""
        source.set_process(1, "old", ticks=10)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        source.set_process(1, "new", ticks=60)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)
        assert percents(rows) == {1: 0.0}

        # The new command is the baseline from here on
        source.set_process(1, "new", ticks=70)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)
        assert percents(rows) == {1: 10.0}

    def test_exited_pid_dropped_without_residue(self, source):
        """Test a PID missing in cycle N+1 is gone, and in N+2 it starts over."""
        source.set_process(1, "a", ticks=0)
        source.set_process(2, "b", ticks=0)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        del source.processes[2]
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)
        assert [row.pid for row in rows] == [1]
        assert 2 not in table

        # Same PID returns with a large counter: no delta against the old sample
        source.set_process(2, "b", ticks=80)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)
        assert percents(rows)[2] == 0.0

    def test_process_exiting_mid_read_is_skipped(self, source):
        """Test a listed PID that cannot be read is silently omitted."""
        source.set_process(1, "a", ticks=0)
        source.gone.add(2)
        table = ProcessTable(source)

        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert [row.pid for row in rows] == [1]
        assert 2 not in table

    def test_listing_failure_propagates(self, source):
        """Test a failure to enumerate processes reaches the caller."""
        source.listing_error = ListingError("proc unreadable")
        table = ProcessTable(source)

        with pytest.raises(ListingError):
            table.refresh(TICK_DELTA, TICKS_PER_SECOND)

    def test_rss_pages_converted_to_kb(self, source):
        """Test resident pages are scaled by the page size."""
        source.set_process(1, "a", ticks=0, rss_pages=256)
        table = ProcessTable(source)

        (row,) = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert row.sample.rss_kb == 1024.0
        assert row.rss_mb == 1.0

    def test_explicit_page_size(self, source):
        """Test the page size can be given explicitly."""
        source.set_process(1, "a", ticks=0, rss_pages=10)
        table = ProcessTable(source, page_size_kb=16.0)

        (row,) = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert row.sample.rss_kb == 160.0

    def test_sorted_by_cpu_then_pid(self, source):
        """Test rows at 10%, 10%, 50% for PIDs 200, 100, 300 come out 300, 100, 200."""
        for pid in (200, 100, 300):
            source.set_process(pid, f"p{pid}", ticks=0)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        source.set_process(200, "p200", ticks=10)
        source.set_process(100, "p100", ticks=10)
        source.set_process(300, "p300", ticks=50)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)

        assert [(row.pid, row.cpu_percent) for row in rows] == [
            (300, 50.0),
            (100, 10.0),
            (200, 10.0),
        ]

    def test_reset_forgets_baseline(self, source):
        """Test reset() makes every PID a first observation again."""
        source.set_process(1, "a", ticks=0)
        table = ProcessTable(source)
        table.refresh(TICK_DELTA, TICKS_PER_SECOND)
        assert len(table) == 1

        table.reset()
        assert len(table) == 0

        source.set_process(1, "a", ticks=40)
        rows = table.refresh(TICK_DELTA, TICKS_PER_SECOND)
        assert percents(rows) == {1: 0.0}


def test_rank_entries_is_deterministic():
    """Test ranking ignores input order."""

    def entry(pid, cpu):
        return ProcessTableEntry(ProcessSample(pid, "x", 0, 0.0), cpu)

    entries = [entry(5, 1.0), entry(3, 1.0), entry(9, 7.5), entry(1, 0.0)]

    ranked = rank_entries(entries)
    assert [e.pid for e in ranked] == [9, 3, 5, 1]
    assert [e.pid for e in rank_entries(list(reversed(entries)))] == [9, 3, 5, 1]
