"""
Cosmetic progress labels shown while a query is in flight.

A handle advances through five labels on a fixed interval and parks on the
last one. It knows nothing about the request it decorates; the owner must
stop it when the query settles.
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Tuple

from .config import phase_interval_from_env
from .records import Language, QueryMode

PHASE_LABELS = {
    (QueryMode.DRUG_IDENTIFY, Language.ZH): (
        "启动视觉神经...",
        "解析药品特征...",
        "检索全球药典...",
        "生成用药指引...",
        "即将完成...",
    ),
    (QueryMode.DRUG_IDENTIFY, Language.EN): (
        "Initializing Vision...",
        "Analyzing Features...",
        "Searching Database...",
        "Generating Guide...",
        "Finalizing...",
    ),
    (QueryMode.SYMPTOM_TRIAGE, Language.ZH): (
        "连接 AI 医疗大脑...",
        "分析症状描述...",
        "匹配病理模型...",
        "生成诊断建议...",
        "整理康复方案...",
    ),
    (QueryMode.SYMPTOM_TRIAGE, Language.EN): (
        "Connecting AI Brain...",
        "Analyzing Symptoms...",
        "Matching Pathology...",
        "Generating Advice...",
        "Creating Plan...",
    ),
}


def phase_labels(mode: QueryMode, language: Language) -> Tuple[str, ...]:
    return PHASE_LABELS[(QueryMode(mode), Language(language))]


class PhaseHandle:
    def __init__(self, labels, interval: float):
        if not labels:
            raise ValueError("at least one phase label is required")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.labels = tuple(labels)
        self.interval = interval
        self._index = 0
        self._stopped = False
        self._lock = threading.RLock()
        self._wake = threading.Event()
        self._listeners: List[Callable[[int, str], None]] = []
        self._thread = threading.Thread(target=self._run, name="loading-phases", daemon=True)

    def _start(self) -> "PhaseHandle":
        self._thread.start()
        return self

    def _run(self):
        last = len(self.labels) - 1
        while not self._wake.wait(self.interval):
            with self._lock:
                if self._stopped:
                    return
                if self._index < last:
                    self._index += 1
                    for listener in list(self._listeners):
                        listener(self._index, self.labels[self._index])
                if self._index >= last:
                    return

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    @property
    def label(self) -> str:
        with self._lock:
            return self.labels[self._index]

    @property
    def active(self) -> bool:
        with self._lock:
            return not self._stopped

    def subscribe(self, callback: Callable[[int, str], None]) -> None:
        """Call ``callback(index, label)`` on every later phase change."""
        with self._lock:
            self._listeners.append(callback)

    def stop(self) -> None:
        # taking the lock waits out a tick in progress, so nothing changes after return
        with self._lock:
            self._stopped = True
            self._listeners.clear()
        self._wake.set()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False


def start_loading_phases(mode: QueryMode, language: Language, interval: Optional[float] = None) -> PhaseHandle:
    if interval is None:
        interval = phase_interval_from_env()
    return PhaseHandle(phase_labels(mode, language), interval)._start()


def stop_loading_phases(handle: PhaseHandle) -> None:
    handle.stop()
