# diligent/driver.py
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from diligent.engine import Analyzer
from diligent.logger import get_logger
from diligent.models import AnalysisItem, Check, Report

logger = get_logger(__name__)


def _analyze_root(analyzer: Analyzer, index: int, check: Check) -> AnalysisItem:
    logger.info("check_started", index=index, prompt=check.prompt)
    return analyzer.analyze(check.prompt, check.command, 0)


def run_checks(
    checks: Sequence[Check],
    analyzer: Analyzer,
    workers: int = 1,
    os_name: Optional[str] = None,
) -> Report:
    """
    Analyze every check at depth 0 and collect the roots in catalog order.

    With workers > 1 independent checks run in a thread pool; each check's
    own follow-up chain stays sequential.
    """
    started_at = datetime.now(timezone.utc)

    if workers <= 1 or len(checks) <= 1:
        items: List[AnalysisItem] = [
            _analyze_root(analyzer, i, chk) for i, chk in enumerate(checks)
        ]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(_analyze_root, analyzer, i, chk)
                for i, chk in enumerate(checks)
            ]
            items = [f.result() for f in futures]

    report = Report(
        items=items,
        os_name=os_name,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )
    logger.info(
        "run_complete",
        checks=len(report.items),
        flagged=report.flagged_count(),
    )
    return report
