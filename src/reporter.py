"""Excel workbook and HTML dashboard built from a scenario run.

The JSON envelopes in the results directory are the primary output. The
reports here are a secondary view over the same data for readers who want
a spreadsheet or a chart:

- Excel workbook with one sheet per scenario that produced data
- Standalone Plotly dashboard with the index history and market caps

Plotly writes self-contained HTML with the JavaScript embedded, so the
dashboard opens in any browser without a Python install.
"""

from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from config.settings import GlobalConfig, get_config
from src.exceptions import ReportGenerationError
from src.logger import get_logger
from src.scenarios import ScenarioRun
from src.validator import ExtremumResult, Instrument, RankedName

log = get_logger(__name__)


def ranked_frame(items: list[RankedName]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Rank": item.rank, "Name": item.name} for item in items],
        columns=["Rank", "Name"],
    )


def market_cap_frame(items: list[Instrument]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Rank": rank, "Name": item.name, "Market Cap (m)": item.market_cap}
            for rank, item in enumerate(items, start=1)
        ],
        columns=["Rank", "Name", "Market Cap (m)"],
    )


def index_history_frame(result: ExtremumResult) -> pd.DataFrame:
    """One row per sample, with the lowest sample flagged."""
    lowest = result.lowest_point
    return pd.DataFrame(
        [
            {
                "Date": point.date.replace(tzinfo=None),
                "Month": point.month_label,
                "Close": point.value,
                "Lowest": point.date == lowest.date,
            }
            for point in result.data_points
        ],
        columns=["Date", "Month", "Close", "Lowest"],
    )


class ReportGenerator:
    """Generates Excel and HTML reports from a ScenarioRun.

    Attributes:
        config: GlobalConfig instance for output paths.
        _timestamp: Report generation timestamp for file naming.

    Example:
        reporter = ReportGenerator()
        paths = reporter.generate_all(run)
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self._timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")

    def _ensure_output_dir(self) -> Path:
        try:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            return self.config.output_dir
        except OSError as exc:
            raise ReportGenerationError(
                report_type="output_directory",
                reason=f"Cannot create output directory: {exc}",
                output_path=str(self.config.output_dir),
            ) from exc

    def _sheets(self, run: ScenarioRun) -> dict[str, pd.DataFrame]:
        sheets: dict[str, pd.DataFrame] = {}
        if run.top_risers is not None:
            sheets["Top Risers"] = ranked_frame(run.top_risers)
        if run.top_fallers is not None:
            sheets["Top Fallers"] = ranked_frame(run.top_fallers)
        if run.market_caps is not None:
            sheets["Market Cap"] = market_cap_frame(run.market_caps)
        if run.index_history is not None:
            sheets["Index History"] = index_history_frame(run.index_history)
        return sheets

    def generate_excel(self, run: ScenarioRun, filename: str | None = None) -> Path:
        """Write one sheet per scenario that produced data, plus a summary.

        Raises:
            ReportGenerationError: If the run has no data or writing fails.
        """
        output_dir = self._ensure_output_dir()
        filename = filename or f"indexlens_export_{self._timestamp}"
        output_path = output_dir / f"{filename}.xlsx"

        sheets = self._sheets(run)
        if not sheets:
            raise ReportGenerationError(
                report_type="Excel",
                reason="No scenario produced data",
                output_path=str(output_path),
            )

        log.info("Generating Excel report", output_path=str(output_path), sheets=list(sheets))

        try:
            with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
                self._summary_frame(run).to_excel(writer, sheet_name="Summary", index=False)
                for sheet_name, frame in sheets.items():
                    frame.to_excel(writer, sheet_name=sheet_name, index=False)
        except Exception as exc:
            raise ReportGenerationError(
                report_type="Excel",
                reason=str(exc),
                output_path=str(output_path),
            ) from exc

        log.info("Excel report generated successfully", output_path=str(output_path))
        return output_path

    def _summary_frame(self, run: ScenarioRun) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "Scenario": outcome.name,
                    "Passed": outcome.passed,
                    "Result File": str(outcome.result_path) if outcome.result_path else "",
                    "Error": outcome.error or "",
                }
                for outcome in run.outcomes
            ],
            columns=["Scenario", "Passed", "Result File", "Error"],
        )

    def generate_dashboard(self, run: ScenarioRun, filename: str | None = None) -> Path:
        """Write a two-panel dashboard: index closes and market caps.

        A panel whose scenario produced no data is left empty.

        Raises:
            ReportGenerationError: If neither panel has data or writing fails.
        """
        output_dir = self._ensure_output_dir()
        filename = filename or f"indexlens_dashboard_{self._timestamp}"
        output_path = output_dir / f"{filename}.html"

        if run.index_history is None and not run.market_caps:
            raise ReportGenerationError(
                report_type="Dashboard",
                reason="No data available for visualization",
                output_path=str(output_path),
            )

        log.info("Generating HTML dashboard", output_path=str(output_path))

        try:
            fig = make_subplots(
                rows=2,
                cols=1,
                subplot_titles=(
                    f"{self.config.index_symbol} monthly close, past "
                    f"{self.config.lookback_years} years",
                    f"Constituents with market cap > {self.config.market_cap_threshold:g}m",
                ),
                vertical_spacing=0.15,
            )

            if run.index_history is not None:
                history = index_history_frame(run.index_history)
                lowest = history[history["Lowest"]]
                fig.add_trace(
                    go.Scatter(
                        x=history["Date"],
                        y=history["Close"],
                        mode="lines+markers",
                        name="Close",
                        line_color="#3498db",
                        hovertemplate="%{x|%B %Y}<br>Close: %{y:,.2f}<extra></extra>",
                    ),
                    row=1,
                    col=1,
                )
                fig.add_trace(
                    go.Scatter(
                        x=lowest["Date"],
                        y=lowest["Close"],
                        mode="markers",
                        name="Lowest",
                        marker={"color": "#e74c3c", "size": 12},
                        hovertemplate="Lowest: %{x|%B %Y}<br>%{y:,.2f}<extra></extra>",
                    ),
                    row=1,
                    col=1,
                )

            if run.market_caps:
                caps = market_cap_frame(run.market_caps).iloc[::-1]
                fig.add_trace(
                    go.Bar(
                        y=caps["Name"],
                        x=caps["Market Cap (m)"],
                        orientation="h",
                        name="Market Cap",
                        marker_color="#27ae60",
                        hovertemplate="<b>%{y}</b><br>%{x:,.2f}m<extra></extra>",
                    ),
                    row=2,
                    col=1,
                )

            fig.update_layout(
                title={
                    "text": (
                        f"<b>{self.config.app_name} Dashboard</b><br>"
                        f"<sup>Source: {self.config.constituents_url} | "
                        f"Generated: {datetime.now(UTC).strftime('%Y-%m-%d %H:%M UTC')}</sup>"
                    ),
                    "x": 0.5,
                    "xanchor": "center",
                },
                showlegend=False,
                height=max(800, 400 + 18 * len(run.market_caps or [])),
                template="plotly_white",
                font={"family": "Arial, sans-serif"},
            )
            fig.update_yaxes(title_text="Close", row=1, col=1)
            fig.update_xaxes(title_text="Market cap (m)", row=2, col=1)

            fig.write_html(str(output_path), include_plotlyjs=True, full_html=True)
        except Exception as exc:
            raise ReportGenerationError(
                report_type="Dashboard",
                reason=str(exc),
                output_path=str(output_path),
            ) from exc

        log.info("HTML dashboard generated successfully", output_path=str(output_path))
        return output_path

    def generate_all(self, run: ScenarioRun) -> dict[str, Path]:
        """Generate every report the run has data for."""
        reports = {"excel": self.generate_excel(run)}
        if run.index_history is not None or run.market_caps:
            reports["dashboard"] = self.generate_dashboard(run)
        return reports
