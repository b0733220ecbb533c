import argparse
import json
import logging
import re
import sys
from pathlib import Path

from .core.editor_engine import EditorEngine
from .core.errors import ProjectFormatError, SpriteStackerError
from .core.image_handler import pil_to_png_bytes, save_png
from .utils.config import EditorConfig
from .utils.helpers import human_readable_size

logger = logging.getLogger(__name__)


def load_project(path: Path) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ProjectFormatError(f"{path} is not a project file: {e}") from e


def _engine(args) -> EditorEngine:
    config = EditorConfig(Path(args.config)) if args.config else EditorConfig()
    return EditorEngine(config=config, on_status=lambda text: logger.info("%s", text))


def _remember(engine: EditorEngine, path: Path):
    engine.config.add_recent(path.resolve())
    engine.config.save()


def _open(args) -> EditorEngine:
    project = Path(args.project)
    if not project.exists():
        raise FileNotFoundError(f"Project not found: {project}")
    engine = _engine(args)
    engine.load_state(load_project(project))
    _remember(engine, project)
    return engine


def run_new(args):
    engine = _engine(args)
    engine.init_project(args.width, args.height, args.layers)
    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(engine.save_state()), encoding="utf-8")
    _remember(engine, out)
    print(f"Created {args.width}x{args.height} project with {args.layers} layer(s): {out}")


def run_render(args):
    engine = _open(args)
    if args.mode == "preview":
        if args.rotation is not None:
            engine.set_preview_rotation(args.rotation)
        if args.spacing is not None:
            engine.set_preview_spacing(args.spacing)
        image = engine.render_preview(scale=args.scale)
    else:
        if args.zoom is not None:
            engine.set_zoom(args.zoom)
        if args.grid:
            engine.state.show_grid = True
        image = engine.render_flat()
    save_png(image, args.output)
    print(f"Rendered {args.mode} view ({image.width}x{image.height}): {args.output}")


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "layer"


def run_export_layers(args):
    engine = _open(args)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    exported = engine.export_layers()
    for i, (name, buffer, _w, _h) in enumerate(exported):
        data = pil_to_png_bytes(buffer.image)
        path = out_dir / f"{i:02d}_{_safe_name(name)}.png"
        path.write_bytes(data)
        print(f"[OK] {name} -> {path.name} ({human_readable_size(len(data))})")
    print(f"Export complete. {len(exported)} layer(s) written to {out_dir}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sprite stacking editor")
    parser.add_argument("--verbose", action="store_true", help="Log debug output")
    parser.add_argument("--config", type=str, help="Config file (default: ~/.sprite_stacker_config.json)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_new = sub.add_parser("new", help="Write a blank project file")
    p_new.add_argument("output", type=str, help="Project .json path")
    p_new.add_argument("--width", type=int, default=32)
    p_new.add_argument("--height", type=int, default=32)
    p_new.add_argument("--layers", type=int, default=1, help="Initial layer count")
    p_new.set_defaults(func=run_new)

    p_render = sub.add_parser("render", help="Render a project to PNG")
    p_render.add_argument("project", type=str)
    p_render.add_argument("output", type=str)
    p_render.add_argument("--mode", choices=("flat", "preview"), default="flat")
    p_render.add_argument("--zoom", type=int, help="Flat view zoom factor")
    p_render.add_argument("--grid", action="store_true", help="Draw the pixel grid (flat view)")
    p_render.add_argument("--rotation", type=float, help="Preview yaw in degrees (-180..180)")
    p_render.add_argument("--spacing", type=float, help="Preview layer spacing (0..1)")
    p_render.add_argument("--scale", type=float, help="Preview pixels per logical pixel")
    p_render.set_defaults(func=run_render)

    p_export = sub.add_parser("export-layers", help="Write one PNG per visible layer")
    p_export.add_argument("project", type=str)
    p_export.add_argument("out_dir", type=str)
    p_export.set_defaults(func=run_export_layers)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        args.func(args)
    except (SpriteStackerError, ValueError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
