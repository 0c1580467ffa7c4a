"""Breakpoint resolution and review notifications — stdout, Slack webhook."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Literal, Optional

import click
import httpx
from pydantic import BaseModel, Field

from uxflow.agents.schemas import BreakpointDecision, BreakpointRequest
from uxflow.config import BreakpointSettings, NotificationChannel

logger = logging.getLogger(__name__)

Severity = Literal["info", "warning"]

_BANNER: Dict[str, str] = {"info": "[REVIEW]", "warning": "[GATE]"}
_SLACK_ICON: Dict[str, str] = {"info": ":eyes:", "warning": ":warning:"}

# Context keys worth surfacing in a short notice
_SUMMARY_KEYS = ("runId", "passRate", "complianceScore", "overallScore", "validationScore")


class ReviewNotice(BaseModel):
    """What reviewers are told about a breakpoint."""

    title: str
    question: str
    severity: Severity = "info"
    highlights: Dict[str, Any] = Field(default_factory=dict)
    files: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_request(cls, request: BreakpointRequest) -> ReviewNotice:
        context = request.context or {}
        return cls(
            title=request.title,
            question=request.question,
            severity=request.severity,
            highlights={k: context[k] for k in _SUMMARY_KEYS if context.get(k) is not None},
            files=[f for f in context.get("files") or [] if isinstance(f, dict)],
        )


class ChannelResult(BaseModel):
    channel: str
    delivered: bool
    error: Optional[str] = None


class Notifier:
    """Announces review notices on the configured channels.

    ``stdout`` needs no settings; ``slack`` posts to the channel's incoming
    webhook.  A failing channel is logged and reported in the returned
    :class:`ChannelResult` list, never raised.
    """

    def __init__(self, channels: Optional[List[NotificationChannel]] = None) -> None:
        self.channels = [NotificationChannel(type="stdout")] if channels is None else channels

    def announce(self, notice: ReviewNotice) -> List[ChannelResult]:
        return [self._deliver(channel, notice) for channel in self.channels]

    def _deliver(self, channel: NotificationChannel, notice: ReviewNotice) -> ChannelResult:
        if channel.type == "stdout":
            return self.echo(notice)
        if channel.type == "slack":
            if not channel.webhook_url:
                return ChannelResult(
                    channel="slack", delivered=False, error="slack channel has no webhook_url"
                )
            return self.post_slack(channel.webhook_url, notice)
        logger.warning("Skipping notification channel %r: unsupported type", channel.type)
        return ChannelResult(
            channel=channel.type, delivered=False, error=f"unsupported channel '{channel.type}'"
        )

    def echo(self, notice: ReviewNotice) -> ChannelResult:
        try:
            click.echo(render_text(notice))
        except OSError as exc:
            logger.error("Could not print breakpoint %r: %s", notice.title, exc)
            return ChannelResult(channel="stdout", delivered=False, error=str(exc))
        return ChannelResult(channel="stdout", delivered=True)

    def post_slack(self, webhook_url: str, notice: ReviewNotice) -> ChannelResult:
        try:
            response = httpx.post(webhook_url, json=render_slack(notice), timeout=10)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            error = f"webhook returned {exc.response.status_code}: {exc.response.text}"
        except httpx.HTTPError as exc:
            error = f"webhook unreachable: {exc}"
        else:
            logger.info("Posted breakpoint %r to Slack", notice.title)
            return ChannelResult(channel="slack", delivered=True)
        logger.error("Slack notice for %r failed: %s", notice.title, error)
        return ChannelResult(channel="slack", delivered=False, error=error)


# ---------------------------------------------------------------------------
# Breakpoint handler
# ---------------------------------------------------------------------------


class BreakpointHandler:
    """Announces breakpoints and resolves them.

    ``auto`` mode approves immediately after notifying.  ``prompt`` mode asks
    on the terminal.  Either way the decision is only recorded; processes
    continue regardless.
    """

    def __init__(
        self,
        mode: str = "auto",
        notifier: Optional[Notifier] = None,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> None:
        if mode not in ("auto", "prompt"):
            raise ValueError(f"Unknown breakpoint mode: {mode!r}")
        self.mode = mode
        self.notifier = notifier or Notifier()
        self._confirm = confirm or _click_confirm

    @classmethod
    def from_settings(cls, settings: BreakpointSettings) -> BreakpointHandler:
        return cls(mode=settings.mode, notifier=Notifier(settings.channels))

    def resolve(self, request: BreakpointRequest) -> BreakpointDecision:
        results = self.notifier.announce(ReviewNotice.from_request(request))
        notified = [r.channel for r in results if r.delivered]

        if self.mode == "prompt":
            approved = self._confirm(f"{request.title}: {request.question}")
            logger.info("Breakpoint %r answered approved=%s", request.title, approved)
            return BreakpointDecision(approved=approved, resolved_by="prompt", notified=notified)

        logger.debug("Breakpoint %r auto-approved", request.title)
        return BreakpointDecision(approved=True, resolved_by="auto", notified=notified)


def _click_confirm(text: str) -> bool:
    return click.confirm(text, default=True)


# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------


def render_text(notice: ReviewNotice) -> str:
    lines = [f"{_BANNER[notice.severity]} {notice.title}", notice.question]
    lines.extend(f"  {key}: {value}" for key, value in notice.highlights.items())
    lines.extend(f"  - {f.get('label') or 'file'}: {f.get('path')}" for f in notice.files)
    return "\n".join(lines)


def render_slack(notice: ReviewNotice) -> Dict[str, Any]:
    """Slack Block Kit payload: header, question, highlights, files."""
    header = f"{_SLACK_ICON[notice.severity]} *{notice.title}*"
    blocks: List[Dict[str, Any]] = [_mrkdwn(header), _mrkdwn(notice.question)]
    if notice.highlights:
        blocks.append(
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{key}*: {json.dumps(value, default=str)}"}
                    for key, value in notice.highlights.items()
                ],
            }
        )
    if notice.files:
        blocks.append(
            _mrkdwn("\n".join(f"• {f.get('label') or 'file'}: `{f.get('path')}`" for f in notice.files))
        )
    return {"blocks": blocks, "text": f"Review needed: {notice.title}"}


def _mrkdwn(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}
