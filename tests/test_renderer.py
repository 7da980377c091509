"""Tests for the mosaicmap.renderer module."""

from unittest.mock import patch

import mercantile
import numpy as np
import pytest
from PIL import Image

from mosaicmap import renderer
from mosaicmap.drawables import Circle, Icon, Line
from mosaicmap.errors import InvalidCoordinate, InvalidViewport, InvalidZoom
from mosaicmap.projection import GeoPoint
from mosaicmap.renderer import MapRenderer, RenderedMap, fit_viewport
from mosaicmap.tile_sources import DirectoryTileSource, SolidTileSource
from mosaicmap.tilegrid import resolve_tiles

from conftest import ColorTileSource, tile_color

RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)


def segment_distance(px, py, a, b):
    """Distance from pixel centers to segment a-b, vectorized."""
    (ax, ay), (bx, by) = a, b
    dx, dy = bx - ax, by - ay
    t = np.clip(((px - ax) * dx + (py - ay) * dy) / (dx * dx + dy * dy), 0.0, 1.0)
    return np.hypot(px - (ax + t * dx), py - (ay + t * dy))


class TestConstruction:
    """Tests for MapRenderer construction and drawable management."""

    def test_rejects_bad_zoom(self):
        with pytest.raises(InvalidZoom):
            MapRenderer(256, 256, center=(0.0, 0.0), zoom=25)

    def test_rejects_bad_center(self):
        with pytest.raises(InvalidCoordinate):
            MapRenderer(256, 256, center=(0.0, 88.0), zoom=3)

    def test_add_keeps_order(self):
        r = MapRenderer(64, 64)
        a = Circle((0.0, 0.0), 1)
        b = Line([(0.0, 0.0), (1.0, 1.0)])
        r.add(a)
        r.extend([b])
        assert r.drawables == (a, b)

    def test_add_rejects_other_types(self):
        with pytest.raises(TypeError):
            MapRenderer(64, 64).add("circle")

    def test_defaults_from_config(self):
        with patch.object(renderer.config, "get", side_effect=lambda key: {
                "width": 123, "height": 45, "tile_size": 256, "fetch_workers": 3,
                "verbose": False}[key]):
            r = MapRenderer()
        assert (r.width, r.height, r.workers) == (123, 45, 3)


class TestRender:
    """Tests for MapRenderer.render."""

    def test_mosaic_without_drawables(self, color_source):
        """With no drawables the output is exactly the tile mosaic."""
        result = MapRenderer(256, 256, center=(0.0, 0.0), zoom=1,
                             tile_source=color_source, workers=2).render()
        expected = np.zeros((256, 256, 4), dtype=np.uint8)
        expected[:128, :128] = tile_color(mercantile.Tile(0, 0, 1))
        expected[:128, 128:] = tile_color(mercantile.Tile(1, 0, 1))
        expected[128:, :128] = tile_color(mercantile.Tile(0, 1, 1))
        expected[128:, 128:] = tile_color(mercantile.Tile(1, 1, 1))
        assert isinstance(result, RenderedMap)
        assert result.missing_tiles == ()
        assert np.array_equal(result.to_array(), expected)

    def test_fully_populated(self):
        """A 256x256 map at (10, 59) z10 has every byte from tiles."""
        result = MapRenderer(256, 256, center=(10.0, 59.0), zoom=10,
                             tile_source=SolidTileSource((10, 20, 30))).render()
        assert (result.width, result.height) == (256, 256)
        assert len(result.data) == 256 * 256 * 4
        assert (result.to_array() == (10, 20, 30, 255)).all()

    def test_red_line(self):
        """Pixels near the path are reddened; pixels beyond reach are untouched."""
        start, end = GeoPoint(10.0, 59.0), GeoPoint(10.1, 59.1)
        r = MapRenderer(256, 256, center=(10.05, 59.05), zoom=10,
                        tile_source=SolidTileSource(WHITE))
        r.add(Line([start, end], width=3, color=RED))
        result = r.render()
        pixels = result.to_array()
        vp = result.viewport
        px, py = np.meshgrid(np.arange(256) + 0.5, np.arange(256) + 0.5)
        d = segment_distance(px, py, vp.geo_to_canvas(start), vp.geo_to_canvas(end))
        far = d > 2.51
        near = d < 0.99
        assert near.any()
        assert (pixels[far] == WHITE).all()
        assert (pixels[near] == RED).all()
        edge = (d > 1.01) & (d < 1.99)
        assert (pixels[edge][:, 0] == 255).all()
        assert ((pixels[edge][:, 1] > 0) & (pixels[edge][:, 1] < 255)).all()

    def test_one_missing_tile(self):
        """A failed tile is reported and its area left transparent."""
        source = ColorTileSource(fail=[mercantile.Tile(0, 0, 1)])
        result = MapRenderer(256, 256, center=(0.0, 0.0), zoom=1,
                             tile_source=source).render()
        pixels = result.to_array()
        assert result.missing_tiles == (mercantile.Tile(0, 0, 1),)
        assert (pixels[:128, :128] == 0).all()
        assert (pixels[128:, 128:, 3] == 255).all()

    def test_none_counts_as_missing(self):
        source = ColorTileSource(empty=[mercantile.Tile(1, 1, 1)])
        result = MapRenderer(256, 256, center=(0.0, 0.0), zoom=1,
                             tile_source=source).render()
        assert result.missing_tiles == (mercantile.Tile(1, 1, 1),)
        assert (result.to_array()[128:, 128:] == 0).all()

    def test_bad_tile_array_counts_as_missing(self):
        result = MapRenderer(64, 64, center=(0.0, 0.0), zoom=0,
                             tile_source=lambda tile: np.zeros((4, 4))).render()
        assert result.missing_tiles == (mercantile.Tile(0, 0, 0),)

    def test_oversized_tile_counts_as_missing(self, temp_dir, tile_tree):
        """A tile Pillow refuses as too large leaves a hole instead of failing."""
        tile_tree(mercantile.Tile(0, 0, 0))
        bomb = Image.DecompressionBombError("too many pixels")
        with patch("mosaicmap.tile_sources.decode_image", side_effect=bomb):
            result = MapRenderer(64, 64, center=(0.0, 0.0), zoom=0,
                                 tile_source=DirectoryTileSource(temp_dir)).render()
        assert result.missing_tiles == (mercantile.Tile(0, 0, 0),)
        assert (result.to_array() == 0).all()

    def test_missing_in_grid_order(self):
        """All tiles failing are listed in resolver order, whatever finished first."""
        everything = {mercantile.Tile(x, y, 3) for x in range(8) for y in range(8)}
        source = ColorTileSource(fail=everything)
        r = MapRenderer(600, 500, center=(0.0, 0.0), zoom=3, tile_source=source, workers=8)
        result = r.render()
        assert result.missing_tiles == tuple(p.tile for p in resolve_tiles(r.viewport()))
        assert result.data == bytes(600 * 500 * 4)

    def test_each_tile_fetched_once(self, color_source):
        MapRenderer(600, 500, center=(0.0, 0.0), zoom=3, tile_source=color_source).render()
        assert len(color_source.requested) == len(set(color_source.requested))

    def test_drawables_paint_in_order(self, color_source, red_icon):
        r = MapRenderer(128, 128, center=(0.0, 0.0), zoom=2, tile_source=color_source)
        r.add(Circle((0.0, 0.0), 10, color=(0, 255, 0)))
        r.add(Circle((0.0, 0.0), 5, color=(0, 0, 255)))
        r.add(Icon((0.0, 0.0), red_icon, offset=(0, 1)))
        pixels = r.render().to_array()
        assert tuple(pixels[64, 64]) == RED
        assert tuple(pixels[60, 61]) == (0, 0, 255, 255)
        assert tuple(pixels[56, 64]) == (0, 255, 0, 255)

    def test_renders_are_repeatable(self, color_source):
        r = MapRenderer(100, 80, center=(10.0, 59.0), zoom=6, tile_source=color_source)
        r.add(Line([(9.0, 58.5), (11.0, 59.5)], width=2.5, color="#ff000080"))
        assert r.render().data == r.render().data

    @pytest.mark.parametrize("width,height", [(0, 100), (100, -5), (10.5, 10)])
    def test_rejects_bad_size(self, width, height, color_source):
        r = MapRenderer(width, height, center=(0.0, 0.0), zoom=1, tile_source=color_source)
        with pytest.raises(InvalidViewport):
            r.render()

    def test_needs_center_or_drawables(self, color_source):
        with pytest.raises(InvalidViewport):
            MapRenderer(100, 100, zoom=3, tile_source=color_source).render()

    def test_default_source_is_http(self):
        with patch.object(renderer, "HTTPTileSource") as mock_cls:
            mock_cls.return_value = SolidTileSource()
            result = MapRenderer(64, 64, center=(0.0, 0.0), zoom=0).render()
        mock_cls.assert_called_once_with()
        assert result.missing_tiles == ()


class TestOutput:
    """Tests for the PNG conveniences."""

    def test_render_png(self, color_source):
        data = MapRenderer(32, 16, center=(0.0, 0.0), zoom=1,
                           tile_source=color_source).render_png()
        assert data.startswith(b"\x89PNG")

    def test_save_png(self, color_source, temp_dir):
        path = temp_dir / "maps" / "out.png"
        result = MapRenderer(32, 16, center=(0.0, 0.0), zoom=1,
                             tile_source=color_source).save_png(path)
        with Image.open(path) as img:
            assert img.size == (32, 16)
            assert img.mode == "RGBA"
            assert np.array_equal(np.asarray(img), result.to_array())


class TestFitViewport:
    """Tests for choosing zoom and center from the drawables."""

    route = [(10.0, 59.0), (10.1, 59.1)]

    def test_highest_fitting_zoom(self):
        vp = fit_viewport([Line(self.route)], 300, 300, 256)
        assert vp.zoom == 11
        assert vp.center.lon == pytest.approx(10.05)
        assert vp.center.lat == pytest.approx(59.05, abs=0.01)

    def test_padding_lowers_zoom(self):
        vp = fit_viewport([Line(self.route)], 300, 300, 256, padding=(20, 20))
        assert vp.zoom == 10

    def test_everything_visible(self):
        r = MapRenderer(300, 200, tile_source=SolidTileSource())
        r.add(Line(self.route))
        r.add(Circle((10.2, 59.0), 6))
        vp = r.render().viewport
        for point in [(10.0, 59.0), (10.1, 59.1)]:
            x, y = vp.geo_to_canvas(GeoPoint(*point))
            assert 0 <= x <= 300 and 0 <= y <= 200
        x, y = vp.geo_to_canvas(GeoPoint(10.2, 59.0))
        assert 6 <= x <= 294 and 6 <= y <= 194

    def test_fixed_center_stays(self):
        center = GeoPoint(10.0, 59.0)
        vp = fit_viewport([Line(self.route)], 300, 300, 256, center=center)
        assert vp.center == center
        assert vp.zoom == 10

    def test_fixed_center_as_tuple(self):
        """A (lon, lat) tuple center behaves like the GeoPoint."""
        vp = fit_viewport([Line(self.route)], 300, 300, 256, center=(10.0, 59.0))
        assert vp.center == GeoPoint(10.0, 59.0)
        assert vp.zoom == 10

    def test_fixed_center_tuple_validated(self):
        with pytest.raises(InvalidCoordinate):
            fit_viewport([Line(self.route)], 300, 300, 256, center=(10.0, 95.0))

    def test_fixed_zoom(self):
        vp = fit_viewport([Line(self.route)], 300, 300, 256, zoom=5)
        assert vp.zoom == 5

    def test_single_point_uses_fit_max_zoom(self):
        vp = fit_viewport([Circle((10.0, 59.0), 0)], 300, 300, 256)
        assert vp.zoom == 17
        assert vp.center.lon == pytest.approx(10.0)
        assert vp.center.lat == pytest.approx(59.0)

    def test_never_fits_falls_back_to_zero(self):
        vp = fit_viewport([Circle((0.0, 0.0), 500)], 300, 300, 256)
        assert vp.zoom == 0

    def test_needs_drawables(self):
        with pytest.raises(InvalidViewport):
            fit_viewport([], 300, 300, 256)
