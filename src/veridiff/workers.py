"""Worker pour exécuter une comparaison dans un thread."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Sequence

from veridiff.config import HeaderMapping
from veridiff.coordinator import compare_files
from veridiff.engine import CancelToken, compare
from veridiff.schema import Dataset, ResultAggregate, Row, SourceFile

logger = logging.getLogger(__name__)


class ComparisonWorker:
    """
    Exécute compare_files / compare hors du thread appelant.

    Les callbacks sont appelés depuis le thread du worker :
    ``on_progress(traités, total)``, ``on_finished(agrégat)``, ``on_error(exception)``.
    """

    def __init__(
        self,
        *,
        on_finished: Callable[[ResultAggregate], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="veridiff-compare")
        self._on_finished = on_finished
        self._on_error = on_error
        self._on_progress = on_progress
        self.cancel_token = CancelToken()

    def request_cancel(self) -> None:
        """Demande l'annulation ; prise en compte au prochain paquet de lignes."""
        self.cancel_token.cancel()

    def _run(self, fn: Callable[..., ResultAggregate], *args: Any, **kwargs: Any) -> ResultAggregate:
        try:
            aggregate = fn(*args, cancel_token=self.cancel_token, on_progress=self._on_progress, **kwargs)
        except Exception as e:
            logger.debug("Worker interrompu: %s", e)
            if self._on_error is not None:
                self._on_error(e)
            raise
        if self._on_finished is not None:
            self._on_finished(aggregate)
        return aggregate

    def submit_files(
        self,
        file1: SourceFile,
        file2: SourceFile,
        combination: str,
        mapping: Sequence[HeaderMapping] | None = None,
        **kwargs: Any,
    ) -> Future[ResultAggregate]:
        """Lance compare_files ; le Future porte l'agrégat ou l'exception."""
        return self._executor.submit(self._run, compare_files, file1, file2, combination, mapping, **kwargs)

    def submit_datasets(
        self,
        dataset1: Dataset | Sequence[Row],
        dataset2: Dataset | Sequence[Row],
        mapping: Sequence[HeaderMapping] | None = None,
        **kwargs: Any,
    ) -> Future[ResultAggregate]:
        """Lance compare sur des jeux déjà parsés."""
        return self._executor.submit(self._run, compare, dataset1, dataset2, mapping, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> ComparisonWorker:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()
