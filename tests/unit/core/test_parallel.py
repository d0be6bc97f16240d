import os

import pytest

from drf_analysis.core.parallel import parallel_map, resolve_workers


def _square(x: int) -> int:
    return x * x


class TestResolveWorkers:
    def test_none_is_sequential(self) -> None:
        assert resolve_workers(None) == 1

    def test_zero_uses_all_cores(self) -> None:
        assert resolve_workers(0) == (os.cpu_count() or 1)

    def test_explicit(self) -> None:
        assert resolve_workers(3) == 3


class TestParallelMap:
    def test_sequential(self) -> None:
        assert parallel_map(_square, range(5)) == [0, 1, 4, 9, 16]

    def test_thread_backend_preserves_order(self) -> None:
        result = parallel_map(_square, range(50), n_workers=4, backend="thread")
        assert result == [x * x for x in range(50)]

    def test_process_backend_preserves_order(self) -> None:
        result = parallel_map(_square, range(20), n_workers=2, backend="process")
        assert result == [x * x for x in range(20)]

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown parallel backend"):
            parallel_map(_square, range(5), n_workers=2, backend="gpu")  # type: ignore[arg-type]

    def test_empty(self) -> None:
        assert parallel_map(_square, [], n_workers=4) == []
