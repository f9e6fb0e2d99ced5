"""
Read statistics visualizations.

The report is a fixed, ordered list of ChartSpec entries. Each entry names the
summary view it draws from and how that view is laid out (x, y, colour and
facet columns); ReadStatsVisualizations turns the list into plotly figures.
Distribution charts are drawn from precomputed box statistics so the figures
never embed the raw per-read table.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
import logging

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .data import COMPOSITION_FIELDS, ERROR_RATE_FIELDS

logger = logging.getLogger(__name__)

FIELD_LABELS = {
    "aliPerc": "Aligned Read Fraction (%)",
    "mmRate": "Mismatch Rate",
    "insRateS": "Insertion Rate (<10 bp)",
    "insRateL": "Insertion Rate (>=10 bp)",
    "delRate": "Deletion Rate",
}

MAPPER_COLORS = ["#547eb4", "#e5806a", "#6aa56e", "#a07cc5", "#f2bf8b", "#2e4667", "#84b7f3"]
ALIGNED_COLORS = {"unaligned": "#f2bf8b", "aligned": "#547eb4"}
BASE_COLORS = {"A": "#6aa56e", "C": "#547eb4", "G": "#f2bf8b", "T": "#e5806a", "N": "#bdbdbd"}


@dataclass(frozen=True)
class ChartSpec:
    """Declarative description of one report chart."""
    key: str
    title: str
    view: str
    kind: str
    x: str
    y: Optional[str] = None
    color: Optional[str] = None
    facet_col: Optional[str] = "sample"
    facet_row: Optional[str] = None
    field: Optional[str] = None
    y_title: Optional[str] = None
    log_x: bool = False


REPORT_CHARTS: List[ChartSpec] = [
    ChartSpec("alignment_rate", "Alignment Rate", view="alignment_rate", kind="stacked_bar",
              x="mapper", y="fraction", color="isAligned", y_title="Fraction of Reads"),
    ChartSpec("read_length_distribution", "Read Length Distribution", view="read_length_histogram",
              kind="line", x="bin_start", y="count", color="mapper", facet_row="isAligned",
              y_title="Number of Reads"),
    ChartSpec("aligned_fraction", "Aligned Fraction per Read", view="distribution", kind="box",
              x="mapper", color="mapper", field="aliPerc", y_title=FIELD_LABELS["aliPerc"]),
] + [
    ChartSpec(f"{field}_distribution", f"{FIELD_LABELS[field]} per Read", view="distribution",
              kind="box", x="mapper", color="mapper", field=field, y_title=FIELD_LABELS[field])
    for field in ERROR_RATE_FIELDS
] + [
    ChartSpec(f"{field}_by_read_length", f"{FIELD_LABELS[field]} by Read Length", view="binned_error_rate",
              kind="box", x="lengthBin", color="mapper", field=field, y_title=FIELD_LABELS[field])
    for field in ERROR_RATE_FIELDS
] + [
    ChartSpec("nucleotide_composition", "Nucleotide Composition", view="composition", kind="stacked_bar",
              x="mapper", y="rate", color="base", y_title="Mean Fraction of Bases"),
]


def _ordered_values(frame: pd.DataFrame, column: str) -> List[str]:
    if isinstance(frame[column].dtype, pd.CategoricalDtype):
        values = [str(v) for v in frame[column].cat.categories]
        present = set(frame[column].astype(str))
        return [v for v in values if v in present]
    return [str(v) for v in pd.unique(frame[column])]


def _empty_figure(title: str) -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title, height=400)
    fig.add_annotation(text="No data to display", showarrow=False, xref='paper', yref='paper', x=0.5, y=0.5)
    return fig


def _strip_facet_prefix(fig: go.Figure) -> go.Figure:
    # plotly labels facets as "column=value"
    fig.for_each_annotation(lambda a: a.update(text=a.text.split("=", 1)[-1]))
    return fig


def composition_long(composition: pd.DataFrame) -> pd.DataFrame:
    """Reshape the composition summary to one row per (sample, mapper, base)."""
    long = composition.melt(id_vars=["sample", "mapper"], value_vars=COMPOSITION_FIELDS,
                            var_name="base", value_name="rate")
    long["base"] = long["base"].str[0].str.upper()
    for column in ("sample", "mapper"):
        if isinstance(composition[column].dtype, pd.CategoricalDtype):
            long[column] = pd.Categorical(long[column], categories=composition[column].cat.categories,
                                          ordered=True)
    return long


class ReadStatsVisualizations:
    """
    Visualization creator for the mapper comparison report.

    Creates faceted plotly figures, one per ChartSpec, from the summary views
    computed by ReadStatsSummaryStats.
    """

    def __init__(self, views: Dict[str, pd.DataFrame], charts: Optional[List[ChartSpec]] = None):
        """
        Args:
            views: Summary tables keyed by view name
            charts: Chart specifications, REPORT_CHARTS by default
        """
        self.views = dict(views)
        if "composition" in self.views:
            self.views["composition"] = composition_long(self.views["composition"])
        self.charts = list(charts) if charts is not None else list(REPORT_CHARTS)

    def _view_for(self, spec: ChartSpec) -> pd.DataFrame:
        if spec.view not in self.views:
            raise KeyError(f"Chart {spec.key!r} needs unknown view {spec.view!r}")
        view = self.views[spec.view]
        if spec.field is not None and "field" in view.columns:
            view = view[view["field"].astype(str) == spec.field]
        return view

    def _category_orders(self, view: pd.DataFrame, spec: ChartSpec) -> Dict[str, List[str]]:
        orders = {}
        for column in (spec.x, spec.color, spec.facet_col, spec.facet_row):
            if column and column in view.columns and not pd.api.types.is_numeric_dtype(view[column]):
                orders[column] = _ordered_values(view, column)
        return orders

    def _color_map(self, view: pd.DataFrame, column: Optional[str]) -> Dict[str, str]:
        if column == "isAligned":
            return dict(ALIGNED_COLORS)
        if column == "base":
            return dict(BASE_COLORS)
        if column and column in view.columns:
            return {v: MAPPER_COLORS[i % len(MAPPER_COLORS)] for i, v in enumerate(_ordered_values(view, column))}
        return {}

    def create_stacked_bar(self, view: pd.DataFrame, spec: ChartSpec) -> go.Figure:
        """Stacked bars of spec.y per spec.x, stacked by spec.color."""
        orders = self._category_orders(view, spec)
        fig = px.bar(
            view.astype({c: str for c in orders}),
            x=spec.x,
            y=spec.y,
            color=spec.color,
            facet_col=spec.facet_col,
            facet_row=spec.facet_row,
            category_orders=orders,
            color_discrete_map=self._color_map(view, spec.color),
            title=spec.title,
            labels={spec.y: spec.y_title or spec.y},
        )
        fig.update_layout(barmode="stack", height=500)
        return _strip_facet_prefix(fig)

    def create_line(self, view: pd.DataFrame, spec: ChartSpec) -> go.Figure:
        """Frequency polygons of spec.y over spec.x, one line per spec.color."""
        orders = self._category_orders(view, spec)
        frame = view.astype({c: str for c in orders}).sort_values(spec.x)
        fig = px.line(
            frame,
            x=spec.x,
            y=spec.y,
            color=spec.color,
            facet_col=spec.facet_col,
            facet_row=spec.facet_row,
            category_orders=orders,
            color_discrete_map=self._color_map(view, spec.color),
            title=spec.title,
            labels={spec.y: spec.y_title or spec.y, "bin_start": "Read Length (bp)"},
            log_x=spec.log_x,
        )
        n_rows = len(orders.get(spec.facet_row, [])) or 1
        fig.update_layout(height=300 * n_rows + 150)
        return _strip_facet_prefix(fig)

    def create_box(self, view: pd.DataFrame, spec: ChartSpec) -> go.Figure:
        """
        Box plots from precomputed quartiles and whisker fences.

        One subplot per facet value; boxes of the same colour value share a
        legend entry across subplots. Outliers are not drawn.
        """
        facets = _ordered_values(view, spec.facet_col) if spec.facet_col else [None]
        groups = _ordered_values(view, spec.color)
        colors = self._color_map(view, spec.color)

        fig = make_subplots(rows=1, cols=len(facets), shared_yaxes=True,
                            subplot_titles=[f for f in facets if f is not None] or None)

        for col, facet in enumerate(facets, 1):
            facet_view = view if facet is None else view[view[spec.facet_col].astype(str) == facet]
            for group in groups:
                data = facet_view[facet_view[spec.color].astype(str) == group]
                if data.empty:
                    continue
                x = data[spec.x].astype(str) if spec.x != "lengthBin" else data[spec.x]
                fig.add_trace(
                    go.Box(
                        x=x,
                        q1=data["q1"],
                        median=data["median"],
                        q3=data["q3"],
                        lowerfence=data["lower_whisker"],
                        upperfence=data["upper_whisker"],
                        name=group,
                        legendgroup=group,
                        offsetgroup=group,
                        showlegend=(col == 1),
                        marker_color=colors.get(group),
                        boxpoints=False,
                        customdata=data[["n", "n_outliers"]].to_numpy(),
                        hovertemplate=(f'<b>{group}</b><br>%{{x}}<br>'
                                       'Reads: %{customdata[0]:,}<br>'
                                       'Outliers: %{customdata[1]:,}<extra></extra>'),
                    ),
                    row=1, col=col
                )

        x_title = "Read Length Bin (kb)" if spec.x == "lengthBin" else ""
        fig.update_xaxes(title_text=x_title)
        fig.update_yaxes(title_text=spec.y_title or spec.field, row=1, col=1)
        fig.update_layout(
            title=spec.title,
            height=500,
            boxmode="group" if spec.x != spec.color else "overlay",
            legend=dict(orientation="h", yanchor="bottom", y=-0.3, xanchor="center", x=0.5),
        )
        return fig

    def create_figure(self, spec: ChartSpec) -> go.Figure:
        """
        Build the figure for one chart specification.

        Returns an annotated empty figure when the view has no rows.
        """
        view = self._view_for(spec)
        if view.empty:
            logger.info("No data for chart %s", spec.key)
            return _empty_figure(spec.title)

        builders = {
            "stacked_bar": self.create_stacked_bar,
            "line": self.create_line,
            "box": self.create_box,
        }
        if spec.kind not in builders:
            raise ValueError(f"Unknown chart kind {spec.kind!r} for chart {spec.key!r}")
        return builders[spec.kind](view, spec)

    def create_all_visualizations(self) -> Dict[str, go.Figure]:
        """
        Create every chart, in report order.

        Returns:
            Dictionary of plotly figures keyed by chart key
        """
        figures = {}
        for spec in self.charts:
            figures[spec.key] = self.create_figure(spec)
        logger.info("Created %d figures", len(figures))
        return figures


def write_figures(figures: Dict[str, go.Figure], output_dir: Path, combined_name: str = "report.html") -> List[Path]:
    """
    Write each figure to its own HTML file and all of them to one combined page.

    Files are named NN_<key>.html in report order; plotly.js is loaded from
    the CDN.

    Returns:
        Paths of the written files, the combined page last
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    sections = []
    for index, (key, fig) in enumerate(figures.items(), 1):
        path = output_dir / f"{index:02d}_{key}.html"
        fig.write_html(str(path), include_plotlyjs="cdn")
        written.append(path)
        sections.append(fig.to_html(full_html=False, include_plotlyjs="cdn" if index == 1 else False))

    combined = output_dir / combined_name
    combined.write_text(
        "<html><head><meta charset=\"utf-8\"><title>Mapper Comparison Report</title></head><body>\n"
        + "\n".join(sections)
        + "\n</body></html>\n",
        encoding="utf-8",
    )
    written.append(combined)
    logger.info("Wrote %d chart files and %s", len(figures), combined)
    return written
