"""Command-line interface for mosaicmap.

Render static map images from the shell using the Typer framework. Tile
source, output size and the rest default to the dynaconf settings
(see `mosaicmap.config`).
"""
import logging
import pathlib
from typing import List, Optional

import typer

from . import config
from .drawables import Circle, Color, Icon, Line
from .errors import MosaicMapError
from .imaging import load_icon
from .projection import GeoPoint, geo_to_tile
from .renderer import MapRenderer
from .tile_sources import DirectoryTileSource, HTTPTileSource

app = typer.Typer()


def _parse_point(raw):
    try:
        lon, lat = (float(v) for v in raw.split(","))
    except ValueError:
        raise ValueError(f"invalid point {raw!r}, expected 'lon,lat'")
    return GeoPoint(lon, lat)


def _parse_points(raw):
    return [_parse_point(p) for p in raw.split(";") if p.strip()]


def _setup(env, verbose):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if env != "DEFAULT":
        typer.echo(f"Environment: {env}")
        config.change_env(env)


@app.command()
def render(output: pathlib.Path = typer.Argument(..., help="PNG file to write."),
           lon: Optional[float] = typer.Option(None, help="Center longitude."),
           lat: Optional[float] = typer.Option(None, help="Center latitude."),
           zoom: Optional[int] = typer.Option(None, help="Zoom level. Fitted to the overlays if omitted."),
           width: Optional[int] = typer.Option(None, help="Image width in pixels."),
           height: Optional[int] = typer.Option(None, help="Image height in pixels."),
           url_template: Optional[str] = typer.Option(None, help="XYZ tile URL with {z}, {x} and {y}."),
           tile_dir: Optional[pathlib.Path] = typer.Option(None, help="Read tiles from a z/x/y.png tree instead."),
           line: Optional[List[str]] = typer.Option(None, help="Polyline 'lon,lat;lon,lat;...'. Repeatable."),
           line_color: str = typer.Option("255,0,0", help="Line color, 'R,G,B[,A]' or '#RRGGBB[AA]'."),
           line_width: float = typer.Option(3.0, help="Line width in pixels."),
           circle: Optional[List[str]] = typer.Option(None, help="Circle center 'lon,lat'. Repeatable."),
           radius: float = typer.Option(8.0, help="Circle radius in pixels."),
           circle_color: str = typer.Option("0,0,255", help="Circle color."),
           icon: Optional[pathlib.Path] = typer.Option(None, help="Marker image pinned to the center by its bottom middle."),
           env: str = typer.Option("DEFAULT", help="Settings environment to use."),
           verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each step and show progress.")):
    """Render a static map and write it as PNG."""
    _setup(env, verbose)
    try:
        center = None
        if lon is not None or lat is not None:
            if lon is None or lat is None:
                raise ValueError("--lon and --lat must be given together")
            center = GeoPoint(lon, lat)
        if tile_dir is not None:
            source = DirectoryTileSource(tile_dir)
        else:
            source = HTTPTileSource(url_template)
        renderer = MapRenderer(width=width, height=height, center=center, zoom=zoom,
                               tile_source=source, verbose=verbose or None)
        for raw in line or []:
            renderer.add(Line(_parse_points(raw), width=line_width,
                              color=Color.parse(line_color)))
        for raw in circle or []:
            renderer.add(Circle(_parse_point(raw), radius, color=Color.parse(circle_color)))
        if icon is not None:
            if center is None:
                raise ValueError("--icon needs --lon and --lat")
            image = load_icon(icon)
            renderer.add(Icon(center, image, offset=(image.shape[1] / 2, image.shape[0])))
        result = renderer.save_png(output)
    except (MosaicMapError, ValueError) as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(1)

    vp = result.viewport
    typer.echo(f"Wrote {output} ({result.width}x{result.height}, "
               f"center {vp.center.lon:.5f},{vp.center.lat:.5f}, zoom {vp.zoom})")
    if result.missing_tiles:
        missing = ", ".join(f"{t.z}/{t.x}/{t.y}" for t in result.missing_tiles)
        typer.echo(f"Missing tiles: {missing}", err=True)


@app.command()
def tile(lon: float, lat: float, zoom: int):
    """Print the z/x/y tile containing a point."""
    try:
        found, local = geo_to_tile(GeoPoint(lon, lat), zoom)
    except MosaicMapError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{found.z}/{found.x}/{found.y}")
    typer.echo(f"pixel in tile: {local.x:.1f},{local.y:.1f}")


@app.callback()
def callback():
    """
    Render static map images from slippy map tiles with lines,
    circles and icons drawn on top.
    """


if __name__ == "__main__":
    app()
