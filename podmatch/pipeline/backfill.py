"""
Prospect backfill — match podcasts to a prospect and add them to the
prospect's outreach sheet.

  PROFILE → EMBEDDING → SIMILARITY SEARCH → QUALITY FILTER → DEDUP → APPEND

Each invocation carries its state in a BackfillRun passed between stages; no
module-level state is shared between requests.
"""
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from podmatch.database import get_session
from podmatch.errors import ConfigurationError, NotFoundError, SheetsError
from podmatch.models.cache_entries import ProspectDashboardPodcast
from podmatch.models.prospect import ProspectDashboard
from podmatch.schemas import (
    AppendResult, BackfillSummary, FilterResult, ProfileText, SimilarityMatch,
)
from podmatch.services import embeddings, quality_filter, sheets, similarity

logger = logging.getLogger('pipeline.backfill')


@dataclass
class BackfillRun:
    """Request-scoped state for one backfill."""
    prospect_id: str
    prospect_name: str = ''
    spreadsheet_id: Optional[str] = None
    profile_text: str = ''
    embedding: List[float] = field(default_factory=list)
    candidates: List[SimilarityMatch] = field(default_factory=list)
    filtered: Optional[FilterResult] = None
    append: Optional[AppendResult] = None
    sheet_export_failed: bool = False
    stage_timings: Dict[str, float] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    @contextmanager
    def stage(self, name: str):
        start = time.monotonic()
        try:
            yield
        finally:
            elapsed = round(time.monotonic() - start, 3)
            self.stage_timings[name] = elapsed
            logger.info("Stage %s finished in %.2fs", name, elapsed,
                        extra={'prospect_id': self.prospect_id, 'stage': name})

    def summary(self, message: str = '') -> BackfillSummary:
        selected = self.filtered.selected if self.filtered else []
        return BackfillSummary(
            prospect_name=self.prospect_name,
            candidates=len(self.candidates),
            selected=len(selected),
            new_added=self.append.new_added if self.append else 0,
            duplicates_skipped=self.append.duplicates_skipped if self.append else 0,
            ai_filtered=bool(self.filtered and not self.filtered.used_fallback),
            sheet_export_failed=self.sheet_export_failed,
            duration_seconds=round(time.monotonic() - self.started_at, 1),
            stage_timings=dict(self.stage_timings),
            message=message,
        )


# ── Dashboard persistence ────────────────────────────────────────────────────

def load_dashboard(dashboard_id: str, not_found_message: str = 'Prospect not found') -> ProspectDashboard:
    session = get_session()
    try:
        dashboard = session.get(ProspectDashboard, dashboard_id)
        if dashboard is None:
            raise NotFoundError(not_found_message)
        session.expunge(dashboard)
        return dashboard
    finally:
        session.close()


def recorded_podcast_ids(dashboard_id: str) -> List[str]:
    """Podcast ids already exported to this dashboard's sheet, per the database."""
    session = get_session()
    try:
        rows = (
            session.query(ProspectDashboardPodcast.podcast_id)
            .filter(ProspectDashboardPodcast.prospect_dashboard_id == dashboard_id)
            .filter(ProspectDashboardPodcast.podcast_id.isnot(None))
            .all()
        )
        return [pid for (pid,) in rows]
    finally:
        session.close()


def record_exported_podcasts(dashboard_id: str, podcasts: List[Dict[str, Any]], podcast_ids: List[str]):
    """Snapshot appended podcasts into prospect_dashboard_podcasts.

    A failure here is logged only; the rows are already in the sheet.
    """
    wanted = set(podcast_ids)
    session = get_session()
    try:
        for podcast in podcasts:
            podcast_id = str(podcast.get('podscan_podcast_id') or podcast.get('podcast_id') or '')
            if podcast_id not in wanted:
                continue
            wanted.discard(podcast_id)
            session.add(ProspectDashboardPodcast(
                prospect_dashboard_id=dashboard_id,
                podcast_id=podcast_id,
                podcast_name=podcast.get('podcast_name') or '',
                podcast_description=podcast.get('podcast_description'),
                podcast_image_url=podcast.get('podcast_image_url'),
                podcast_url=podcast.get('podcast_url'),
                publisher_name=podcast.get('publisher_name'),
                itunes_rating=podcast.get('itunes_rating'),
                episode_count=podcast.get('episode_count'),
                audience_size=podcast.get('audience_size'),
                podcast_categories=podcast.get('podcast_categories'),
                similarity=podcast.get('similarity'),
            ))
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error("Failed to record exported podcasts", exc_info=True,
                     extra={'dashboard_id': dashboard_id})
    finally:
        session.close()


def export_to_dashboard_sheet(dashboard: ProspectDashboard, podcasts: List[Dict[str, Any]],
                              cache_only: bool = False) -> AppendResult:
    """Dedup `podcasts` against the dashboard's sheet, append the rest, record them."""
    known = recorded_podcast_ids(dashboard.id)
    existing = sheets.existing_podcast_ids(dashboard.spreadsheet_id, recorded_ids=known, cache_only=cache_only)
    result = sheets.append_podcasts(dashboard.spreadsheet_id, podcasts, existing)
    if result.appended_ids:
        record_exported_podcasts(dashboard.id, podcasts, result.appended_ids)
    return result


# ── Pipeline ─────────────────────────────────────────────────────────────────

def backfill_prospect_podcasts(prospect_id: str) -> BackfillSummary:
    """
    Run the full backfill for one prospect dashboard.

    Raises NotFoundError for an unknown prospect and EmbeddingError when the
    embedding call fails (before anything is written). A failed sheet export
    is reported in the summary rather than raised, including missing Google
    credentials.
    """
    run = BackfillRun(prospect_id=prospect_id)
    logger.info("Backfill started", extra={'prospect_id': prospect_id})

    dashboard = load_dashboard(prospect_id)
    run.prospect_name = dashboard.prospect_name
    run.spreadsheet_id = dashboard.spreadsheet_id
    run.profile_text = ProfileText.from_prospect(dashboard).render()

    with run.stage('embedding'):
        run.embedding = embeddings.generate_embedding(run.profile_text)

    with run.stage('search'):
        run.candidates = similarity.search_similar_podcasts(run.embedding)

    if not run.candidates:
        logger.info("No podcasts above similarity threshold", extra={'prospect_id': prospect_id})
        return run.summary(message='No matching podcasts found')

    with run.stage('quality_filter'):
        run.filtered = quality_filter.select_top_podcasts(run.profile_text, run.candidates)

    if run.spreadsheet_id and run.filtered.selected:
        podcasts = [
            {**match.to_dict(), 'podscan_podcast_id': match.podcast_id}
            for match in run.filtered.selected
        ]
        with run.stage('sheet_export'):
            try:
                run.append = export_to_dashboard_sheet(dashboard, podcasts)
            except (SheetsError, ConfigurationError) as e:
                run.sheet_export_failed = True
                logger.warning("Sheet export failed, podcasts were matched but not written: %s", e,
                               extra={'prospect_id': prospect_id})
    elif not run.spreadsheet_id:
        logger.info("Prospect has no spreadsheet; skipping export", extra={'prospect_id': prospect_id})

    summary = run.summary()
    logger.info("Backfill complete: %d candidates, %d selected, %d added, %d duplicates",
                summary.candidates, summary.selected, summary.new_added, summary.duplicates_skipped,
                extra={'prospect_id': prospect_id, 'duration_seconds': summary.duration_seconds})
    return summary
