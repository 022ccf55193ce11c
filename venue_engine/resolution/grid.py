import math

from venue_engine.models import GeoPoint

CELL_DEG = 0.0022  # ~250m of latitude
MIN_LNG_SCALE = 0.25


class GridKeyIndexer:
    """
    Quantize coordinates into coarse, roughly square cells.

    Latitude uses a fixed step. Longitude uses the same physical distance,
    widened by 1/cos(lat) of the cell row, with the cosine clamped so cells
    near the poles stay finite.
    """

    def __init__(self, cell_deg: float = CELL_DEG, min_scale: float = MIN_LNG_SCALE):
        self.cell_deg = cell_deg
        self.min_scale = min_scale

    def key_for(self, point: GeoPoint) -> str:
        row = round(point.lat / self.cell_deg)
        cell_lat = row * self.cell_deg

        # Scale from the quantized row so the whole row shares one lng step
        scale = max(self.min_scale, math.cos(math.radians(cell_lat)))
        lng_step = self.cell_deg / scale

        lng = ((point.lng + 180.0) % 360.0) - 180.0
        col = round(lng / lng_step)
        cell_lng = col * lng_step

        return f"{cell_lat:.4f},{cell_lng:.4f}"
