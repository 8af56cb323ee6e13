"""
Typed records exchanged between services, with parse-and-validate boundaries
for every third-party payload (OpenAI, Anthropic, Podscan, Google Sheets).

Upstream JSON is converted here once; the rest of the code base only sees
these dataclasses.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from podmatch.config import BIO_MAX_CHARS, EMBEDDING_DIMENSIONS
from podmatch.errors import ResponseShapeError, ValidationError

CACHE_SOURCES = ('client_dashboard', 'prospect_dashboard', 'booking')


# ── Profiles ──────────────────────────────────────────────────────────────────

@dataclass
class ProfileText:
    """Name + bio + tagline of a prospect or client, the input to embedding."""
    name: str
    bio: str = ''
    tagline: str = ''

    def render(self) -> str:
        parts = []
        if self.name:
            parts.append(f"Guest: {self.name.strip()}")
        if self.tagline:
            parts.append(f"Tagline: {self.tagline.strip()}")
        if self.bio:
            parts.append(f"Background: {self.bio.strip()[:BIO_MAX_CHARS]}")
        return '\n'.join(parts)

    @classmethod
    def from_prospect(cls, prospect) -> 'ProfileText':
        return cls(
            name=prospect.prospect_name or '',
            bio=prospect.prospect_bio or '',
            tagline=prospect.prospect_tagline or '',
        )


# ── Embeddings (OpenAI) ──────────────────────────────────────────────────────

def parse_embedding_response(response) -> List[float]:
    """Extract the vector from an OpenAI embeddings response.

    Raises ResponseShapeError when the payload has no data or the vector has
    the wrong dimension.
    """
    data = getattr(response, 'data', None)
    if not data:
        raise ResponseShapeError('Embedding response contained no data')
    vector = getattr(data[0], 'embedding', None)
    if not isinstance(vector, list) or len(vector) != EMBEDDING_DIMENSIONS:
        raise ResponseShapeError(
            f"Expected {EMBEDDING_DIMENSIONS}-dimension embedding, got "
            f"{len(vector) if isinstance(vector, list) else type(vector).__name__}"
        )
    return [float(x) for x in vector]


# ── Similarity search ─────────────────────────────────────────────────────────

@dataclass
class SimilarityMatch:
    """One podcast returned by similarity search."""
    podcast_id: str
    podcast_name: str
    similarity: float
    podcast_description: str = ''
    audience_size: Optional[int] = None
    itunes_rating: Optional[float] = None
    episode_count: Optional[int] = None
    podcast_image_url: Optional[str] = None
    podcast_url: Optional[str] = None
    publisher_name: Optional[str] = None
    podcast_categories: Optional[list] = None
    podcast_email: Optional[str] = None

    @classmethod
    def from_podcast(cls, podcast, similarity: float) -> 'SimilarityMatch':
        return cls(
            podcast_id=podcast.podscan_id,
            podcast_name=podcast.podcast_name or '',
            similarity=similarity,
            podcast_description=podcast.podcast_description or '',
            audience_size=podcast.audience_size,
            itunes_rating=podcast.itunes_rating,
            episode_count=podcast.episode_count,
            podcast_image_url=podcast.podcast_image_url,
            podcast_url=podcast.podcast_url,
            publisher_name=podcast.publisher_name,
            podcast_categories=podcast.podcast_categories,
            podcast_email=podcast.podcast_email,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── Quality filter ────────────────────────────────────────────────────────────

@dataclass
class FilterResult:
    selected: List[SimilarityMatch]
    used_fallback: bool
    reason: str = ''


# ── Compatibility scoring (Anthropic) ────────────────────────────────────────

@dataclass
class CompatibilityScore:
    podcast_id: str
    score: Optional[int]
    reasoning: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── Podscan ───────────────────────────────────────────────────────────────────

@dataclass
class PodscanPodcast:
    """Flattened podcast record as delivered by the Podscan API."""
    podscan_id: str
    podcast_name: str
    podcast_description: Optional[str] = None
    podcast_image_url: Optional[str] = None
    podcast_url: Optional[str] = None
    publisher_name: Optional[str] = None
    host_name: Optional[str] = None
    podcast_categories: List[Dict[str, Any]] = field(default_factory=list)
    language: Optional[str] = None
    region: Optional[str] = None
    episode_count: Optional[int] = None
    last_posted_at: Optional[datetime] = None
    is_active: bool = True
    itunes_rating: Optional[float] = None
    itunes_rating_count: Optional[int] = None
    audience_size: Optional[int] = None
    podcast_reach_score: Optional[float] = None
    podcast_email: Optional[str] = None
    website: Optional[str] = None
    rss_url: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> 'PodscanPodcast':
        if not isinstance(payload, dict):
            raise ResponseShapeError(f"Podscan podcast must be an object, got {type(payload).__name__}")
        podcast_id = payload.get('podcast_id')
        if not podcast_id:
            raise ResponseShapeError('Podscan podcast is missing podcast_id')

        reach = payload.get('reach') or {}
        itunes = reach.get('itunes') or {}
        categories = [
            {'category_id': c.get('category_id'), 'category_name': c.get('category_name')}
            for c in (payload.get('podcast_categories') or [])
            if isinstance(c, dict)
        ]
        return cls(
            podscan_id=str(podcast_id),
            podcast_name=payload.get('podcast_name') or '',
            podcast_description=payload.get('podcast_description'),
            podcast_image_url=payload.get('podcast_image_url'),
            podcast_url=payload.get('podcast_url'),
            publisher_name=payload.get('publisher_name'),
            host_name=payload.get('host_name'),
            podcast_categories=categories,
            language=payload.get('language'),
            region=payload.get('region'),
            episode_count=_to_int(payload.get('episode_count')),
            last_posted_at=_to_datetime(payload.get('last_posted_at')),
            is_active=payload.get('is_active', True) is not False,
            itunes_rating=_to_float(itunes.get('itunes_rating_average')),
            itunes_rating_count=_to_int(itunes.get('itunes_rating_count')),
            audience_size=_to_int(reach.get('audience_size')),
            podcast_reach_score=_to_float(payload.get('podcast_reach_score')),
            podcast_email=reach.get('email'),
            website=reach.get('website'),
            rss_url=payload.get('rss_url'),
        )

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


# ── Tiered cache ──────────────────────────────────────────────────────────────

@dataclass
class CachedPodcastMetadata:
    """Universal podcast metadata resolved from one of the cache tables.

    Personalized fields (AI analysis) are never included. Demographics are only
    present on the client_dashboard variant.
    """
    podcast_id: str
    podcast_name: str
    source: str
    source_id: Optional[str]
    cached_at: Optional[datetime]
    has_demographics: bool = False
    podcast_description: Optional[str] = None
    podcast_image_url: Optional[str] = None
    podcast_url: Optional[str] = None
    publisher_name: Optional[str] = None
    itunes_rating: Optional[float] = None
    itunes_rating_count: Optional[int] = None
    episode_count: Optional[int] = None
    audience_size: Optional[int] = None
    podcast_categories: Optional[list] = None
    last_posted_at: Optional[datetime] = None
    rss_url: Optional[str] = None
    demographics: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.source not in CACHE_SOURCES:
            raise ValueError(f"Unknown cache source: {self.source}")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ('cached_at', 'last_posted_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


# ── Spreadsheet sync ──────────────────────────────────────────────────────────

@dataclass
class AppendResult:
    new_added: int
    duplicates_skipped: int
    updated_range: Optional[str] = None
    appended_ids: List[str] = field(default_factory=list)


def outreach_row(podcast: Dict[str, Any]) -> List[str]:
    """Row layout of the outreach sheet; the identifier sits in column E."""
    rating = podcast.get('itunes_rating')
    episodes = podcast.get('episode_count')
    return [
        podcast.get('podcast_name') or '',
        podcast.get('podcast_description') or '',
        '' if rating is None else str(rating),
        '' if episodes is None else str(episodes),
        str(podcast.get('podscan_podcast_id') or podcast.get('podcast_id') or ''),
    ]


# ── Pipeline summaries ────────────────────────────────────────────────────────

@dataclass
class BackfillSummary:
    """Outcome of one backfill run, serialized as the endpoint response."""
    prospect_name: str
    candidates: int = 0
    selected: int = 0
    new_added: int = 0
    duplicates_skipped: int = 0
    ai_filtered: bool = False
    sheet_export_failed: bool = False
    duration_seconds: float = 0.0
    stage_timings: Dict[str, float] = field(default_factory=dict)
    message: str = ''

    def to_dict(self) -> Dict[str, Any]:
        data = {'success': True, **asdict(self), 'total': self.selected}
        if not data['message']:
            data.pop('message')
        return data


# ── Request bodies ────────────────────────────────────────────────────────────

def json_object(payload) -> Dict[str, Any]:
    """The parsed request body as a dict. A missing or unparsable body is empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def require_field(body: Dict[str, Any], name: str, message: str = None):
    """Return body[name] or raise ValidationError when it is missing or empty."""
    value = body.get(name)
    if value is None or (isinstance(value, (str, list, dict)) and not value):
        raise ValidationError(message or f"{name} is required")
    return value


# ── Coercion helpers ──────────────────────────────────────────────────────────

def _to_int(value):
    if value is None or value == '':
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _to_float(value):
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_datetime(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None
