"""
Flow files: request chains described in YAML.

    phases:
      - name: authenticate
        steps:
          - get: https://example.com/users/sign_in
            name: login-page
      - name: dashboard
        steps:
          - post: https://example.com/users/sign_in
            data: {user: me, password: secret}
            name: login
          - cookie: "seen_intro=1"
            url: https://example.com
          - get: https://example.com/dashboard
            name: dashboard

Each phase runs in its own Requester seeded with the previous phase's
session, so a later phase reuses the cookies of an earlier one. A file with
a top-level ``steps`` list is a single phase.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml

from .chain import Requester
from .config import RequesterConfig
from .errors import FlowError
from .fetcher import HTTPFetcher
from .session import Session

logger = structlog.get_logger(__name__)

STEP_KINDS = ('get', 'post', 'cookie')


class Phase:
    def __init__(self, name: str, steps: List[Dict[str, Any]]):
        self.name = name
        self.steps = steps

    def build(self, requester: Requester) -> Requester:
        """Queue this phase's steps on ``requester``."""
        for step in self.steps:
            options = {'headers': step['headers']} if step.get('headers') else None
            if 'get' in step:
                requester.get(step['get'], step.get('name'), options)
            elif 'post' in step:
                requester.post(step['post'], step.get('data') or {}, step.get('name'), options)
            else:
                requester.set_cookie(step['cookie'], step['url'], step.get('options'))
        return requester


class FlowResult:
    def __init__(self):
        self.phases: Dict[str, Requester] = {}
        self.error: Optional[BaseException] = None
        self.failed_phase: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def responses(self) -> Dict[str, Any]:
        """Named responses of every phase that ran, later phases winning."""
        merged = {}
        for requester in self.phases.values():
            merged.update(requester.responses)
        return merged


def _parse_headers(headers: Any, where: str) -> Dict[str, str]:
    """Header values as strings; YAML hands back ints and bools for bare scalars."""
    if not isinstance(headers, dict):
        raise FlowError(f"{where}: headers must be a mapping")

    parsed = {}
    for key, value in headers.items():
        if isinstance(value, bool):
            value = str(value).lower()
        elif isinstance(value, (int, float)):
            value = str(value)
        elif not isinstance(value, str):
            raise FlowError(f"{where}: header {key} must be a string or number")
        parsed[str(key)] = value
    return parsed


def _parse_step(raw: Any, where: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise FlowError(f"{where}: step must be a mapping")

    kinds = [kind for kind in STEP_KINDS if kind in raw]
    if len(kinds) != 1:
        raise FlowError(f"{where}: step needs exactly one of {', '.join(STEP_KINDS)}")
    if kinds[0] == 'cookie' and not raw.get('url'):
        raise FlowError(f"{where}: cookie step needs a url")
    if raw.get('headers') is not None:
        raw = dict(raw, headers=_parse_headers(raw['headers'], where))
    if raw.get('name') is not None and not isinstance(raw['name'], str):
        raise FlowError(f"{where}: name must be a string")
    return raw


def parse_flow(data: Any) -> List[Phase]:
    """Validate a loaded flow document and return its phases."""
    if not isinstance(data, dict):
        raise FlowError("flow must be a mapping with 'phases' or 'steps'")

    if 'phases' in data:
        raw_phases = data['phases']
    elif 'steps' in data:
        raw_phases = [{'name': 'main', 'steps': data['steps']}]
    else:
        raise FlowError("flow must define 'phases' or 'steps'")

    if not isinstance(raw_phases, list) or not raw_phases:
        raise FlowError("flow needs at least one phase")

    phases = []
    for i, raw_phase in enumerate(raw_phases):
        if not isinstance(raw_phase, dict) or not isinstance(raw_phase.get('steps'), list):
            raise FlowError(f"phase {i}: needs a 'steps' list")
        name = str(raw_phase.get('name') or f"phase-{i}")
        steps = [
            _parse_step(raw, f"phase {name} step {j}")
            for j, raw in enumerate(raw_phase['steps'])
        ]
        phases.append(Phase(name, steps))
    return phases


def load_flow(path: str) -> List[Phase]:
    """Load and validate a flow YAML file."""
    try:
        with open(Path(path), 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FlowError(f"Flow file not found: {path}")
    except yaml.YAMLError as e:
        raise FlowError(f"Invalid YAML in flow file: {e}")
    return parse_flow(data)


async def run_flow(
    phases: List[Phase],
    settings: RequesterConfig = None,
    transport=None,
    session: Session = None,
) -> FlowResult:
    """Run phases in order, handing each phase's session to the next.

    Stops at the first phase whose chain fails.
    """
    owns_transport = transport is None
    if owns_transport:
        transport = HTTPFetcher(settings)

    result = FlowResult()
    try:
        for phase in phases:
            requester = phase.build(Requester(session, transport=transport, settings=settings))
            result.phases[phase.name] = requester

            logger.info("phase_started", phase=phase.name, steps=len(requester))
            error = await requester.run()
            session = requester.get_cookies()

            if error is not None:
                result.error = error
                result.failed_phase = phase.name
                logger.warning("phase_failed", phase=phase.name, error=str(error))
                break
            logger.info("phase_completed", phase=phase.name)
    finally:
        if owns_transport:
            await transport.aclose()
    return result
