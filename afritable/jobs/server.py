"""HTTP entrypoint that queues enhancement/collection jobs and serves quality reports."""

from __future__ import annotations

import dataclasses
import logging
import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from afritable.core.monitoring import RestaurantNotFoundError
from afritable.core.services import Services, build_services
from afritable.data.metro_areas import get_metro_area
from afritable.jobs.collect_metro import MetroCollectionJob, resolve_metros
from afritable.jobs.enhance_restaurants import EnhancementOptions, RestaurantEnhancementJob

logger = logging.getLogger(__name__)

_ENHANCE_FLAGS = ("skip_existing", "force_update", "include_photos", "include_scraping", "include_validation")


def to_json(value: Any) -> Any:
    """Dataclasses, enums and datetimes to plain JSON types."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_json(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(to_json(key)): to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


class PayloadError(ValueError):
    pass


def _parse_enhance_payload(payload: Dict[str, Any], default_batch_size: int) -> EnhancementOptions:
    options = EnhancementOptions(batch_size=default_batch_size)

    restaurant_id = payload.get("restaurant_id")
    if restaurant_id is not None:
        if not isinstance(restaurant_id, (str, int)) or isinstance(restaurant_id, bool) or not str(restaurant_id).strip():
            raise PayloadError("restaurant_id must be a non-empty string")
        options.restaurant_ids = [str(restaurant_id).strip()]

    batch_raw = payload.get("batch_size")
    if batch_raw is not None:
        try:
            batch_size = int(batch_raw)
        except (TypeError, ValueError) as exc:
            raise PayloadError("batch_size must be numeric") from exc
        if batch_size <= 0:
            raise PayloadError("batch_size must be positive")
        options.batch_size = batch_size

    for flag in _ENHANCE_FLAGS:
        if flag in payload:
            if not isinstance(payload[flag], bool):
                raise PayloadError(f"{flag} must be a boolean")
            setattr(options, flag, payload[flag])
    return options


def _parse_collect_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    metros = payload.get("metros")
    if metros is not None:
        if not isinstance(metros, list) or not all(isinstance(item, str) for item in metros):
            raise PayloadError("metros must be a list of metro ids")
        unknown = [metro_id for metro_id in metros if get_metro_area(metro_id) is None]
        if unknown:
            raise PayloadError(f"unknown metros: {', '.join(unknown)}")
    quick = payload.get("quick", False)
    if not isinstance(quick, bool):
        raise PayloadError("quick must be a boolean")
    force_update = payload.get("force_update", False)
    if not isinstance(force_update, bool):
        raise PayloadError("force_update must be a boolean")
    return {"metros": metros, "quick": quick, "force_update": force_update}


def create_app(services: Services) -> Flask:
    app = Flask(__name__)

    @app.get("/")
    def root() -> Any:
        return "ok", 200

    @app.get("/healthz")
    def healthcheck() -> Any:
        settings = services.settings
        return (
            jsonify(
                {
                    "status": "ok",
                    "providers": {
                        provider.value: adapter.is_configured for provider, adapter in services.adapters.items()
                    },
                    "maps_backend": settings.maps_backend,
                    "worker_port_config": settings.worker_port,
                    "revision": os.getenv("K_REVISION", "unknown"),
                }
            ),
            200,
        )

    @app.post("/enhance")
    def enqueue_enhancement() -> Any:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        try:
            options = _parse_enhance_payload(payload, services.settings.enhance_batch_size)
        except PayloadError as exc:
            return jsonify({"error": str(exc)}), 400

        def run() -> Dict[str, Any]:
            job = RestaurantEnhancementJob(services.store, services.enhancement)
            return job.run(options).to_dict()

        logger.info("Queueing enhancement: %s", options)
        task_id = services.tasks.submit("enhance", run)
        return jsonify({"data": {"status": "queued", "task_id": task_id}}), 202

    @app.post("/collect")
    def enqueue_collection() -> Any:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        try:
            args = _parse_collect_payload(payload)
        except PayloadError as exc:
            return jsonify({"error": str(exc)}), 400

        def run() -> Dict[str, Any]:
            job = MetroCollectionJob(
                services.store,
                services.adapters,
                metros=resolve_metros(args["metros"]),
                use_regions=not args["quick"],
                force_update=args["force_update"],
            )
            return job.run().to_dict()

        logger.info("Queueing collection: %s", args)
        task_id = services.tasks.submit("collect", run)
        return jsonify({"data": {"status": "queued", "task_id": task_id}}), 202

    @app.get("/tasks/<task_id>")
    def task_status(task_id: str) -> Any:
        task = services.tasks.get(task_id)
        if task is None:
            return jsonify({"error": "task not found"}), 404
        return jsonify({"data": task.to_dict()}), 200

    @app.get("/quality/overview")
    def quality_overview() -> Any:
        report = services.monitoring.generate_data_monitoring_report()
        return jsonify({"data": to_json(report)}), 200

    @app.get("/quality/restaurants/<restaurant_id>")
    def restaurant_quality(restaurant_id: str) -> Any:
        try:
            metrics = services.monitoring.assess_restaurant_data_quality(restaurant_id)
        except RestaurantNotFoundError as exc:
            return jsonify({"error": str(exc)}), 404
        return jsonify({"data": to_json(metrics)}), 200

    @app.get("/quality/outdated")
    def outdated_restaurants() -> Any:
        outdated = services.monitoring.identify_outdated_restaurants()
        return jsonify({"data": {"count": len(outdated), "restaurant_ids": outdated}}), 200

    return app


def main(services: Optional[Services] = None) -> None:
    """Bind on $PORT when the platform injects it, otherwise on WORKER_PORT."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    services = services or build_services()
    env_port = os.getenv("PORT")
    port = int(env_port or services.settings.worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app = create_app(services)
    try:
        app.run(host="0.0.0.0", port=port)
    finally:
        services.close()


if __name__ == "__main__":
    main()
