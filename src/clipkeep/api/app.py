import base64
import logging
from datetime import datetime
from typing import Any, Dict, Type, TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from clipkeep import __version__
from clipkeep.api.schemas import (
    IdList,
    MaskRequest,
    Membership,
    NewItem,
    NewPinboard,
    NewRule,
    PinboardChanges,
    RuleChanges,
    RuleMove,
    SearchQuery,
    ShareChanges,
    Tag,
    TagList,
)
from clipkeep.exceptions import InvalidRulePatternError, NotFoundError
from clipkeep.models.clipboarditem import ClipboardItem, ItemKind
from clipkeep.services.container import ClipKeepServices
from clipkeep.utils.thumbnails import make_thumbnail

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _not_found(what: str, identifier: str) -> JSONResponse:
    return _error(f"{what} {identifier} not found", status_code=404)


async def _parse(request: Request, model: Type[M]) -> M:
    payload = await request.json()
    return model.model_validate(payload)


def _build_item(new: NewItem) -> ClipboardItem:
    if new.kind is ItemKind.TEXT:
        return ClipboardItem.text(new.content, source_app=new.sourceApp)
    if new.kind is ItemKind.LINK:
        return ClipboardItem.link(new.content, title=new.linkTitle, source_app=new.sourceApp)
    if new.kind is ItemKind.FILE:
        return ClipboardItem.file(new.content, source_app=new.sourceApp)
    data = base64.b64decode(new.content, validate=True)
    return ClipboardItem.image(data, make_thumbnail(data), source_app=new.sourceApp)


def create_app(services: ClipKeepServices) -> FastAPI:
    """HTTP surface over an already built set of services."""
    app = FastAPI(title="ClipKeep", version=__version__)
    items = services.items
    pinboards = services.pinboards
    rules = services.rules

    @app.get("/")
    def root():
        return "running"

    # -- items -------------------------------------------------------------

    @app.get("/items")
    def list_items(limit: int = 50):
        return [item.to_record() for item in items.recent(limit)]

    @app.get("/items/{item_id}")
    def get_item(item_id: str):
        item = items.get(item_id)
        if item is None:
            return _not_found("item", item_id)
        return item.to_record()

    @app.post("/items", status_code=201)
    async def create_item(request: Request):
        try:
            new = await _parse(request, NewItem)
            candidate = _build_item(new)
        except ValueError as e:
            return _error(str(e))

        if new.kind in (ItemKind.TEXT, ItemKind.LINK) and services.classifier.should_ignore(new.content):
            logger.info("Rejected sensitive content from share path")
            return _error("content matches a sensitive-data rule", status_code=422)

        item = items.insert(candidate)
        if new.pinboardId is not None and not pinboards.add_item(new.pinboardId, item.itemId):
            return _not_found("pinboard", new.pinboardId)
        return items.get(item.itemId).to_record()

    @app.delete("/items/{item_id}")
    def delete_item(item_id: str):
        if not items.delete(item_id):
            return _not_found("item", item_id)
        return {"ok": True}

    @app.delete("/items")
    def clear_history():
        return {"ok": True, "removed": items.clear_history()}

    @app.put("/items/{item_id}/tags")
    async def set_tags(item_id: str, request: Request):
        try:
            body = await _parse(request, TagList)
        except ValueError as e:
            return _error(str(e))
        item = items.set_tags(item_id, body.tags)
        if item is None:
            return _not_found("item", item_id)
        return item.to_record()

    @app.post("/items/{item_id}/tags")
    async def add_tag(item_id: str, request: Request):
        try:
            body = await _parse(request, Tag)
        except ValueError as e:
            return _error(str(e))
        item = items.add_tag(item_id, body.tag)
        if item is None:
            return _not_found("item", item_id)
        return item.to_record()

    @app.delete("/items/{item_id}/tags/{tag}")
    def remove_tag(item_id: str, tag: str):
        item = items.remove_tag(item_id, tag)
        if item is None:
            return _not_found("item", item_id)
        return item.to_record()

    @app.post("/search")
    async def search(request: Request):
        try:
            body = await _parse(request, SearchQuery)
        except ValueError as e:
            return _error(str(e))
        date_range = None
        if body.start is not None or body.end is not None:
            date_range = (body.start or datetime.min, body.end or datetime.max)
        results = items.search(body.query, types=body.types, date_range=date_range)
        return [item.to_record() for item in results]

    # -- pinboards ---------------------------------------------------------

    @app.get("/pinboards")
    def list_pinboards():
        return [pinboard.to_record() for pinboard in pinboards.pinboards]

    @app.post("/pinboards", status_code=201)
    async def create_pinboard(request: Request):
        try:
            body = await _parse(request, NewPinboard)
        except ValueError as e:
            return _error(str(e))
        return pinboards.create(body.name, icon_name=body.iconName, color=body.color).to_record()

    @app.patch("/pinboards/{pinboard_id}")
    async def update_pinboard(pinboard_id: str, request: Request):
        try:
            body = await _parse(request, PinboardChanges)
        except ValueError as e:
            return _error(str(e))
        current = pinboards.get(pinboard_id)
        if current is None:
            return _not_found("pinboard", pinboard_id)
        changes = body.model_dump(exclude_none=True)
        pinboards.update(current.model_copy(update=changes))
        return pinboards.get(pinboard_id).to_record()

    @app.put("/pinboards/{pinboard_id}/share")
    async def share_pinboard(pinboard_id: str, request: Request):
        try:
            body = await _parse(request, ShareChanges)
        except ValueError as e:
            return _error(str(e))
        pinboard = pinboards.set_share_status(pinboard_id, body.shareStatus,
                                              share_url=body.shareUrl,
                                              shared_with=body.sharedWith)
        if pinboard is None:
            return _not_found("pinboard", pinboard_id)
        return pinboard.to_record()

    @app.delete("/pinboards/{pinboard_id}")
    def delete_pinboard(pinboard_id: str):
        if not pinboards.delete(pinboard_id):
            return _not_found("pinboard", pinboard_id)
        return {"ok": True}

    @app.put("/pinboards")
    async def reorder_pinboards(request: Request):
        try:
            body = await _parse(request, IdList)
        except ValueError as e:
            return _error(str(e))
        return [pinboard.to_record() for pinboard in pinboards.reorder(body.ids)]

    @app.get("/pinboards/{pinboard_id}/items")
    def pinboard_items(pinboard_id: str):
        if pinboards.get(pinboard_id) is None:
            return _not_found("pinboard", pinboard_id)
        return [item.to_record() for item in pinboards.items_for(pinboard_id)]

    @app.post("/pinboards/{pinboard_id}/items")
    async def pin_item(pinboard_id: str, request: Request):
        try:
            body = await _parse(request, Membership)
        except ValueError as e:
            return _error(str(e))
        if not pinboards.add_item(pinboard_id, body.itemId):
            return _error("unknown pinboard or item", status_code=404)
        return {"ok": True}

    @app.put("/pinboards/{pinboard_id}/items")
    async def reorder_pinboard_items(pinboard_id: str, request: Request):
        try:
            body = await _parse(request, IdList)
        except ValueError as e:
            return _error(str(e))
        pinboard = pinboards.reorder_items(pinboard_id, body.ids)
        if pinboard is None:
            return _not_found("pinboard", pinboard_id)
        return pinboard.to_record()

    @app.delete("/pinboards/{pinboard_id}/items/{item_id}")
    def unpin_item(pinboard_id: str, item_id: str):
        if not pinboards.remove_item(pinboard_id, item_id):
            return _error("item is not on that pinboard", status_code=404)
        return {"ok": True}

    # -- rules -------------------------------------------------------------

    @app.get("/rules")
    def list_rules():
        return [rule.to_record() for rule in rules.rules]

    @app.post("/rules", status_code=201)
    async def create_rule(request: Request):
        try:
            body = await _parse(request, NewRule)
            rule = rules.create(body.name, body.pattern, action=body.action,
                                description=body.description, enabled=body.isEnabled)
        except InvalidRulePatternError as e:
            return _error(str(e), status_code=422)
        except ValueError as e:
            return _error(str(e))
        return rule.to_record()

    @app.patch("/rules/{rule_id}")
    async def edit_rule(rule_id: str, request: Request):
        try:
            body = await _parse(request, RuleChanges)
            rule = rules.edit(rule_id, **body.model_dump(exclude_none=True))
        except NotFoundError:
            return _not_found("rule", rule_id)
        except InvalidRulePatternError as e:
            return _error(str(e), status_code=422)
        except ValueError as e:
            return _error(str(e))
        return rule.to_record()

    @app.delete("/rules/{rule_id}")
    def delete_rule(rule_id: str):
        if not rules.remove(rule_id):
            return _not_found("rule", rule_id)
        return {"ok": True}

    @app.post("/rules/{rule_id}/toggle")
    def toggle_rule(rule_id: str):
        rule = rules.toggle(rule_id)
        if rule is None:
            return _not_found("rule", rule_id)
        return rule.to_record()

    @app.post("/rules/{rule_id}/move")
    async def move_rule(rule_id: str, request: Request):
        try:
            body = await _parse(request, RuleMove)
        except ValueError as e:
            return _error(str(e))
        if not rules.move(rule_id, body.index):
            return _not_found("rule", rule_id)
        return [rule.to_record() for rule in rules.rules]

    @app.post("/rules/reset")
    def reset_rules():
        return [rule.to_record() for rule in rules.reset_to_builtins()]

    @app.post("/mask")
    async def mask(request: Request):
        try:
            body = await _parse(request, MaskRequest)
        except ValueError as e:
            return _error(str(e))
        classifier = services.classifier
        analysis = classifier.analyze_content(body.content)
        return {
            "masked": classifier.mask_content(body.content),
            "action": analysis.matched_action.value if analysis.matched_action else None,
            "riskLevel": analysis.risk_level.value,
            "warnings": analysis.warnings,
            "suggestions": analysis.suggestions,
        }

    # -- settings & maintenance -------------------------------------------

    @app.get("/settings")
    def get_settings():
        return services.settings.settings.model_dump(mode="json")

    @app.patch("/settings")
    async def update_settings(request: Request):
        try:
            changes: Dict[str, Any] = await request.json()
            if not isinstance(changes, dict):
                return _error("expected a JSON object")
            updated = services.settings.update(**changes)
        except ValueError as e:
            return _error(str(e))
        return updated.model_dump(mode="json")

    @app.post("/settings/reset")
    def reset_settings():
        return services.settings.reset_to_defaults().model_dump(mode="json")

    @app.post("/cleanup")
    def cleanup():
        return {"ok": True, "removed": items.cleanup_if_needed()}

    @app.post("/sync")
    def sync():
        status = services.sync.sync()
        body = {
            "ok": status.ok,
            "message": status.message,
            "syncedAt": status.synced_at.isoformat() if status.synced_at else None,
        }
        return body if status.ok else JSONResponse(body, status_code=409)

    return app
