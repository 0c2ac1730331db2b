"""Setup: install the notification forwarder on monitored spreadsheets.

For every document a bound Apps Script project is created, the forwarder is
pushed into it, and its installTriggers() function is run to subscribe to
edit, change and open events. Running setup twice on the same document
creates a second project with a second set of triggers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from string import Template
from typing import TYPE_CHECKING, Any

from loguru import logger

from sheetaudit.transport import TransportError

if TYPE_CHECKING:
    from sheetaudit.config import Settings
    from sheetaudit.script_transport import ScriptTransport

PROJECT_TITLE = "sheetaudit forwarder"
INSTALL_FUNCTION = "installTriggers"


class SetupError(Exception):
    """Raised when setup cannot run with the current configuration."""


@dataclass(frozen=True)
class InstallResult:
    """Result of installing the forwarder on one document."""

    document_id: str
    success: bool
    script_id: str = ""
    message: str = ""
    # Forwarder pushed, but installTriggers() must be run from the editor
    needs_manual_run: bool = False


def manual_run_instructions(script_id: str) -> str:
    return (
        f"open https://script.google.com/d/{script_id}/edit and run "
        f"{INSTALL_FUNCTION}() once to activate the triggers"
    )


def _read_template(name: str) -> Template:
    source = resources.files("sheetaudit").joinpath("forwarder", name).read_text(
        encoding="utf-8"
    )
    return Template(source)


def render_forwarder(settings: Settings) -> list[dict[str, Any]]:
    """Render the forwarder project files for the Apps Script API.

    Returns:
        File dicts with name, type and source keys
    """
    if not settings.public_url:
        raise SetupError("PUBLIC_URL must be set to the address of the sheetaudit service")

    code = _read_template("Code.gs").substitute(
        # JSON string escaping is valid JavaScript string escaping
        endpoint=json.dumps(settings.public_url.rstrip("/"))[1:-1],
        token=json.dumps(settings.webhook_secret)[1:-1],
    )
    manifest = _read_template("appsscript.json").substitute(time_zone=settings.time_zone)
    return [
        {"name": "appsscript", "type": "JSON", "source": manifest},
        {"name": "Code", "type": "SERVER_JS", "source": code},
    ]


def target_documents(settings: Settings, document_id: str | None = None) -> list[str]:
    """Documents setup applies to.

    In single-document mode there is no list, so the document must be given.
    """
    if document_id is not None:
        if settings.is_multi_document and settings.find_source(document_id) is None:
            raise SetupError(f"Document {document_id} is not in MONITORED_SOURCES")
        return [document_id]
    if not settings.is_multi_document:
        raise SetupError("Pass a document ID or configure MONITORED_SOURCES")
    return [source.document_id for source in settings.monitored_sources]


async def install_forwarder(
    transport: ScriptTransport, document_id: str, files: list[dict[str, Any]]
) -> InstallResult:
    """Create, fill and activate a forwarder project on one document.

    Running installTriggers() through the API only works when the new
    project is switched to the Cloud project of the caller's OAuth client.
    When the run fails the project is kept and the result carries the
    manual step instead.
    """
    try:
        project = await transport.create_project(PROJECT_TITLE, parent_id=document_id)
        await transport.update_content(project.script_id, files)
    except TransportError as e:
        logger.error(f"Forwarder install failed for {document_id}: {e}")
        return InstallResult(document_id, success=False, message=str(e))

    try:
        trigger_count = await transport.run_function(project.script_id, INSTALL_FUNCTION)
    except TransportError as e:
        logger.warning(
            f"Forwarder pushed to {document_id} but {INSTALL_FUNCTION}() did not run: {e}"
        )
        return InstallResult(
            document_id,
            success=False,
            script_id=project.script_id,
            message=f"{e}; {manual_run_instructions(project.script_id)}",
            needs_manual_run=True,
        )

    logger.info(f"Forwarder installed on {document_id} (script {project.script_id})")
    message = "triggers installed"
    if isinstance(trigger_count, int | float):
        message = f"{int(trigger_count)} trigger(s) active"
    return InstallResult(
        document_id, success=True, script_id=project.script_id, message=message
    )


async def setup_documents(
    settings: Settings,
    transport: ScriptTransport,
    document_id: str | None = None,
) -> list[InstallResult]:
    """Install the forwarder on every target document.

    Args:
        settings: Application settings
        transport: Apps Script transport
        document_id: Only this document (required in single-document mode)

    Returns:
        One InstallResult per document, in order
    """
    files = render_forwarder(settings)
    results = []
    for target in target_documents(settings, document_id):
        results.append(await install_forwarder(transport, target, files))
    return results
