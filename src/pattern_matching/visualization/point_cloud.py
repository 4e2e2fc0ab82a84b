"""
Point Cloud Visualization Tools

This module provides visualization tools for scans, the reference pattern,
registration results and occupancy images.
"""

from typing import Optional

import numpy as np
import plotly.graph_objects as go

# Optional VTK-based interactive plotter
try:
    import pyvista as pv  # type: ignore
except ImportError:  # pragma: no cover
    pv = None  # type: ignore


class PointCloudVisualizer:
    """A class for visualizing point cloud data using different backends."""

    def __init__(self, backend: str = 'plotly'):
        """
        Args:
            backend: 'plotly' or 'pyvista'
        """
        if backend not in ['plotly', 'pyvista']:
            raise ValueError(
                f"Unsupported backend: '{backend}'. Choose 'plotly' or 'pyvista'."
            )
        self.backend = backend

    # ----------------- Public API -----------------
    def visualize_clouds(self, point_clouds: list[np.ndarray], names: list[str], sample_size: int | None = None):
        if len(point_clouds) != len(names):
            raise ValueError("The number of point clouds must match the number of names.")
        if sample_size:
            point_clouds = [self._downsample(pc, sample_size) for pc in point_clouds]
        if self.backend == 'plotly':
            self.build_clouds_figure(point_clouds, names).show(renderer="browser")
        else:
            self._visualize_pyvista(point_clouds, names)

    def visualize_match(self, reference: np.ndarray, scan: np.ndarray, result, sample_size: Optional[int] = None):
        """
        Show the reference, the raw scan and the scan aligned onto the reference.

        Args:
            reference: Reference pattern points
            scan: Raw scan points
            result: MatchResult of the scan
            sample_size: Optional per-cloud downsampling
        """
        registration = result.registration
        status = "found" if result.matched else "not found"
        title = (
            f"Pattern {status} (fitness {registration.fitness_score:.3e}, "
            f"{result.matched_point_count} points)"
        )
        clouds = [reference, scan, registration.aligned_cloud]
        names = ["reference", "scan", "aligned scan"]
        if sample_size:
            clouds = [self._downsample(pc, sample_size) for pc in clouds]
        if self.backend == 'plotly':
            self.build_clouds_figure(clouds, names, title=title).show(renderer="browser")
        else:
            self._visualize_pyvista(clouds, names)

    def visualize_occupancy_image(self, image: np.ndarray, title: str = "Occupancy image"):
        if self.backend == 'plotly':
            self.build_occupancy_figure(image, title=title).show(renderer="browser")
            return
        # PyVista: image as a flat structured grid, one cell per pixel
        rows, cols = image.shape
        grid = self._pyvista().ImageData(dimensions=(cols + 1, rows + 1, 1))
        grid.cell_data["occupancy"] = np.asarray(image, dtype=float).ravel(order='C')
        plotter = self._get_plotter()
        plotter.add_mesh(grid, scalars="occupancy", cmap="gray", show_edges=False, lighting=False)
        plotter.view_xy()
        plotter.show()

    def build_clouds_figure(
        self,
        point_clouds: list[np.ndarray],
        names: list[str],
        title: str = "Point Cloud Visualization",
    ) -> go.Figure:
        fig = go.Figure()
        for pc, name in zip(point_clouds, names):
            pc = np.asarray(pc, dtype=float).reshape(-1, 3)
            fig.add_trace(go.Scatter3d(
                x=pc[:, 0], y=pc[:, 1], z=pc[:, 2],
                mode='markers',
                marker=dict(size=2),
                name=name,
            ))
        fig.update_layout(
            title=title,
            scene=dict(
                xaxis=dict(visible=False), yaxis=dict(visible=False), zaxis=dict(visible=False), aspectmode='data'
            ),
        )
        return fig

    def build_occupancy_figure(self, image: np.ndarray, title: str = "Occupancy image") -> go.Figure:
        image = np.asarray(image)
        if image.ndim != 2:
            raise ValueError(f"Occupancy image must be 2D, got shape {image.shape}")
        fig = go.Figure(data=go.Heatmap(
            z=image,
            colorscale='Greys',
            reversescale=True,
            showscale=False,
        ))
        # Row index grows with Y, keep cells square
        fig.update_layout(title=title, xaxis_title='column (X)', yaxis_title='row (Y)')
        fig.update_yaxes(scaleanchor="x", scaleratio=1)
        fig.update_xaxes(constrain='domain')
        return fig

    # ----------------- Internal helpers -----------------
    def _downsample(self, point_cloud: np.ndarray, sample_size: int) -> np.ndarray:
        if sample_size >= len(point_cloud):
            return point_cloud
        indices = np.random.choice(len(point_cloud), sample_size, replace=False)
        return point_cloud[indices]

    @staticmethod
    def _pyvista():
        if pv is None:
            raise ImportError("pyvista is not installed. Install with 'pip install pyvista'.")
        return pv

    def _get_plotter(self):
        return self._pyvista().Plotter()

    def _visualize_pyvista(self, point_clouds: list[np.ndarray], names: list[str]):
        plotter = self._get_plotter()
        colors = ['red', 'blue', 'green', 'yellow', 'purple', 'orange']
        for i, (pc, name) in enumerate(zip(point_clouds, names)):
            if len(pc) == 0:
                continue
            poly_data = self._pyvista().PolyData(np.asarray(pc, dtype=float))
            plotter.add_mesh(
                poly_data,
                label=name,
                color=colors[i % len(colors)],
                render_points_as_spheres=False,
                point_size=3,
                lighting=False,
            )
        plotter.add_legend()
        plotter.show()
