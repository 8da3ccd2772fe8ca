"""End-to-end handling of QR generation requests.

Order of work for ``generate``: validate input, resolve the caller, admit
against the quota ledger, consult the cache, and only on a miss encode and
persist. Validation happens before any I/O, identity and quota failures
short-circuit before the cache is touched.

New artifacts go through two states. ``pending`` holds an image of the raw
content so the row can be written and receive its id; ``finalized`` holds
the image that is actually handed out, which encodes the artifact's own
``/scan/<id>`` URL. Printed codes therefore point at an endpoint we control
(scan analytics, retargeting) rather than at the raw target. Pending rows
are never returned to callers.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable

from flask import current_app

from ..errors import ServiceError, ValidationError
from ..models import utcnow
from . import qr
from .cache import ArtifactCache
from .quota import Denied, QuotaLedger, Usage
from .store import ArtifactStore, get_store
from .style import Style, validate_content, validate_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    url: Any
    name: Any = None
    customization: Any = None

    @classmethod
    def from_mapping(cls, data) -> 'GenerationRequest':
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
        return cls(url=data.get('url'), name=data.get('name'), customization=data.get('customization'))


@dataclass(frozen=True)
class GenerationResult:
    artifact: Any
    cached: bool
    usage: Usage | None = None

    def to_response(self, message: str) -> dict:
        body = {'message': message, 'qrCode': self.artifact.to_dict(cached=self.cached)}
        if self.usage is not None:
            body['usage'] = self.usage.to_dict()
        return body


class GenerationOrchestrator:
    def __init__(self, ledger: QuotaLedger, cache: ArtifactCache, store: ArtifactStore,
                 encoder: Callable[..., str], base_url: str, clock: Callable = utcnow):
        self.ledger = ledger
        self.cache = cache
        self.store = store
        self.encoder = encoder
        self.base_url = base_url.rstrip('/')
        self.clock = clock

    def scan_url(self, artifact_id) -> str:
        return f'{self.base_url}/scan/{artifact_id}'

    def _validate(self, req: GenerationRequest):
        content = validate_content(req.url)
        style = Style.from_payload(req.customization)
        name = validate_name(req.name, content)
        return content, name, style

    def generate(self, req: GenerationRequest, identify: Callable) -> GenerationResult:
        content, name, style = self._validate(req)
        caller = identify()
        now = self.clock()

        decision = self.ledger.admit(caller, now)
        if isinstance(decision, Denied):
            raise decision.to_error()

        artifact = self.cache.lookup(content, caller.subject_id, caller.channel, style)
        if artifact is not None:
            self.cache.record_hit(artifact, now)
            return GenerationResult(artifact=artifact, cached=True, usage=decision.usage)

        artifact = self._create(caller, content, name, style, now)
        return GenerationResult(artifact=artifact, cached=False, usage=decision.usage.plus_one())

    def _create(self, caller, content, name, style, now):
        raw_image = self.encoder(content, style)
        artifact = self.store.create_pending(
            name=name,
            data=content,
            qr_data=raw_image,
            user_id=caller.subject_id,
            api_key_id=caller.key_id,
            generated_via=caller.channel,
            created_at=now,
            last_accessed=now,
            **style.columns(),
        )
        # Never retried: a blind retry after the first commit would duplicate the row.
        try:
            redirect_image = self.encoder(self.scan_url(artifact.id), style)
            self.store.finalize(artifact, redirect_image)
        except ServiceError:
            self.store.discard(artifact)
            raise
        logger.info(
            'Created artifact %s for subject=%s via %s', artifact.id, caller.subject_id, caller.channel,
        )
        return artifact

    def preview(self, req: GenerationRequest, identify: Callable) -> dict:
        """Encode the raw content with the requested style; nothing is stored or counted."""
        content, _, style = self._validate(req)
        identify()
        return {
            'qrData': self.encoder(content, style),
            'url': content,
            'customization': style.to_payload(),
        }


def build_orchestrator() -> GenerationOrchestrator:
    cfg = current_app.config
    store = get_store()
    return GenerationOrchestrator(
        ledger=QuotaLedger(current_app.extensions['quota_policy'], store),
        cache=ArtifactCache(
            store,
            include_style=cfg.get('CACHE_KEY_INCLUDES_STYLE', True),
            strict=cfg.get('STRICT_HIT_RECORDING', False),
        ),
        store=store,
        encoder=qr.encode,
        base_url=cfg['BASE_URL'],
    )
