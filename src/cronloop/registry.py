"""Registry of scheduled jobs and parsing of registration entries."""

import itertools
import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from cronloop.errors import InvalidParameterError, MissingCallbackError
from cronloop.schedule import CronExpression, resolve_timezone
from cronloop.types import JOB_PARAMS, Job, JobSpec, JobView

logger = logging.getLogger(__name__)

# Alternative spellings accepted in mapping records
RECORD_ALIASES = {"cron": "expression", "cb": "callback"}
RECORD_KEYS = JOB_PARAMS | {"expression", "callback"}


def _build_spec(**fields: Any) -> JobSpec:
    """Validate field values into a JobSpec."""
    expression = fields.get("expression")
    if fields.get("callback") is None:
        raise MissingCallbackError(f"No callback found for cron entry '{expression}'")
    if not callable(fields["callback"]):
        raise InvalidParameterError(f"Callback for cron entry '{expression}' is not callable")

    try:
        return JobSpec(**fields)
    except ValidationError as e:
        raise InvalidParameterError(f"Invalid parameters for cron entry '{expression}': {e}") from e


def _spec_from_mapping(record: Mapping[str, Any]) -> JobSpec:
    """Build a JobSpec from a dict such as ``{"cron": ..., "cb": ...}``."""
    fields: dict[str, Any] = {}
    for key, value in record.items():
        key = RECORD_ALIASES.get(key, key)
        if key not in RECORD_KEYS:
            raise InvalidParameterError(f"Unknown param '{key}'")
        fields[key] = value

    if "expression" not in fields:
        raise InvalidParameterError(f"No cron expression in entry {dict(record)!r}")
    return _build_spec(**fields)


def parse_entries(*entries: Any) -> list[JobSpec]:
    """Turn registration arguments into job specs.

    Three forms are accepted and may be mixed:

    - ``JobSpec`` instances.
    - Mappings with ``expression``/``cron``, ``callback``/``cb`` and any of
      ``name``, ``single``, ``timezone``.
    - A flat token stream where each expression is followed by optional
      ``key, value`` pairs and ends with the callback::

          parse_entries(
              "* * * * *", every_minute,
              "0 * * * *", "name", "hourly", "single", True, hourly,
          )

    A single list or tuple argument is unpacked first.

    Raises:
        InvalidParameterError: On an unrecognized key or malformed value.
        MissingCallbackError: If an entry has no callback.
    """
    if len(entries) == 1 and isinstance(entries[0], (list, tuple)):
        entries = tuple(entries[0])

    tokens = list(entries)
    specs: list[JobSpec] = []
    pos = 0

    while pos < len(tokens):
        token = tokens[pos]
        pos += 1

        if isinstance(token, JobSpec):
            specs.append(_build_spec(**token.model_dump()))
            continue
        if isinstance(token, Mapping):
            specs.append(_spec_from_mapping(token))
            continue
        if not isinstance(token, str):
            raise InvalidParameterError(f"Expected a cron expression, got {token!r}")

        expression = token
        fields: dict[str, Any] = {"expression": expression}
        while pos < len(tokens):
            key = tokens[pos]
            pos += 1
            if callable(key):
                fields["callback"] = key
                break
            if not isinstance(key, str) or key not in JOB_PARAMS:
                raise InvalidParameterError(f"Unknown param '{key}'")
            if pos >= len(tokens):
                break
            fields[key] = tokens[pos]
            pos += 1

        specs.append(_build_spec(**fields))

    return specs


class JobRegistry:
    """Registered jobs keyed by id.

    Ids come from a counter starting at 1 and are never reused, even after
    the job they identified is removed.
    """

    def __init__(self) -> None:
        self._jobs: dict[int, Job] = {}
        self._ids = itertools.count(1)

    def register(self, spec: JobSpec) -> Job:
        """Register one job.

        Raises:
            RegistrationError: If the spec is invalid.
        """
        return self.register_all([spec])[0]

    def register_all(self, specs: Iterable[JobSpec]) -> list[Job]:
        """Register several jobs atomically.

        Every expression and timezone is parsed before any job is stored,
        so a failure leaves the registry untouched.
        """
        prepared = []
        for spec in specs:
            if spec.callback is None:
                raise MissingCallbackError(f"No callback found for cron entry '{spec.expression}'")
            prepared.append((spec, CronExpression(spec.expression), resolve_timezone(spec.timezone)))

        jobs = []
        for spec, expression, tz in prepared:
            job_id = next(self._ids)
            job = Job(
                id=job_id,
                name=spec.name or str(job_id),
                expression=expression,
                tz=tz,
                callback=spec.callback,
                single=spec.single,
            )
            self._jobs[job_id] = job
            jobs.append(job)
        return jobs

    def get(self, job_id: int) -> Job | None:
        return self._jobs.get(job_id)

    def pop(self, job_id: int) -> Job | None:
        """Remove a job and cancel its timers."""
        job = self._jobs.pop(job_id, None)
        if job is not None:
            job.cancel_watchers()
        return job

    def remove(self, ids: Iterable[int]) -> list[Job]:
        """Remove several jobs; unknown ids are ignored.

        Returns:
            The jobs that were removed.
        """
        removed = []
        for job_id in ids:
            job = self.pop(job_id)
            if job is None:
                logger.debug(f"Job '{job_id}' not found")
            else:
                removed.append(job)
        return removed

    def snapshot(self) -> Mapping[int, JobView]:
        """Read-only mapping of id to job view."""
        return MappingProxyType({job_id: job.view() for job_id, job in self._jobs.items()})

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)
