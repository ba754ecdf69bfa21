"""Reference implementation of the remote parse service (Flask)."""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify, request

from .config import AppConfig, load_config
from .dsl.parser import parse
from .graph.serialize import graph_from_dict, graph_to_dict
from .graph.types import Graph
from .layout.engine import layout
from .routing.router import route_all, routes_to_dict

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None) -> Flask:
    cfg = config or load_config()
    app = Flask(__name__)
    state = {"last_prompt": None}

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/parse", methods=["POST"])
    def parse_prompt():
        body = request.get_json(silent=True)
        prompt = body.get("prompt") if isinstance(body, dict) else None
        if not isinstance(prompt, str):
            return jsonify({"status": "error", "error": "Request body must be JSON with a string 'prompt'"}), 400

        state["last_prompt"] = prompt
        try:
            parsed = parse(prompt, canvas_width=cfg.canvas_width)
            clusters, nodes = layout(
                parsed.clusters, parsed.nodes, canvas_width=cfg.canvas_width, canvas_height=cfg.canvas_height
            )
        except Exception as e:
            logger.error(f"Parse failed: {e}")
            return jsonify({"status": "error", "error": str(e)}), 500

        data = graph_to_dict(Graph(clusters=clusters, nodes=nodes, edges=parsed.edges))
        data["message"] = f"Parsed {len(nodes)} nodes, {len(parsed.edges)} edges, {len(clusters)} clusters"
        logger.info(data["message"])
        return jsonify(data)

    @app.route("/api/last-prompt")
    def last_prompt():
        return jsonify({"prompt": state["last_prompt"]})

    @app.route("/api/route", methods=["POST"])
    def route_graph():
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not isinstance(body.get("graph"), dict):
            return jsonify({"status": "error", "error": "Request body must be JSON with a 'graph' object"}), 400
        try:
            graph = graph_from_dict(body["graph"])
        except (KeyError, TypeError) as e:
            return jsonify({"status": "error", "error": f"Malformed graph: {e}"}), 400
        return jsonify({"routes": routes_to_dict(route_all(graph))})

    return app


def run(host: str = "127.0.0.1", port: int = 5001, debug: bool = False) -> None:
    app = create_app()
    app.run(host=host, port=port, debug=debug)
