from .reader import HEADER_ROW, Grid, read_grid, write_grid

__all__ = ["HEADER_ROW", "Grid", "read_grid", "write_grid"]
