"""PDF report of a single flight."""
import logging
import os
from datetime import datetime

import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

from .log import FlightLog, latest_log_path, load_log
from .plots import flight_overview

logger = logging.getLogger(__name__)

ROWS_PER_PAGE = 40


def _text_page(title, subtitle='', body=''):
    fig = plt.figure(figsize=(8.27, 11.69))
    fig.text(0.5, 0.62, title, ha='center', fontsize=26, fontweight='bold')
    if subtitle:
        fig.text(0.5, 0.56, subtitle, ha='center', fontsize=14)
    if body:
        fig.text(0.1, 0.45, body, ha='left', va='top', fontsize=11, wrap=True)
    return fig


def _table_pages(title, rows, col_labels):
    """One or more pages holding a two-column table."""
    pages = []
    chunks = [rows[i:i + ROWS_PER_PAGE] for i in range(0, len(rows), ROWS_PER_PAGE)] or [[]]
    for n, chunk in enumerate(chunks, start=1):
        fig, ax = plt.subplots(figsize=(8.27, 11.69))
        ax.axis('off')
        page_title = title if len(chunks) == 1 else f"{title} ({n}/{len(chunks)})"
        ax.set_title(page_title, fontsize=14, fontweight='bold', pad=20)
        if chunk:
            table = ax.table(cellText=chunk, colLabels=col_labels, cellLoc='left',
                             loc='upper center', colWidths=[0.45, 0.45])
            table.auto_set_font_size(False)
            table.set_fontsize(8)
            table.scale(1.0, 1.2)
            for j in range(len(col_labels)):
                cell = table[(0, j)]
                cell.set_facecolor('#4caf50')
                cell.set_text_props(weight='bold', color='white')
        else:
            ax.text(0.5, 0.5, 'No entries in log', ha='center', va='center',
                    transform=ax.transAxes)
        pages.append(fig)
    return pages


def system_information(flog: FlightLog):
    return [[str(k), str(v)] for k, v in sorted(flog.info.items())]


def parameter_rows(flog: FlightLog):
    return [[str(k), f"{v:g}" if isinstance(v, float) else str(v)]
            for k, v in sorted(flog.parameters.items())]


def write_flight_report(flog: FlightLog, out_dir: str = 'reports') -> str:
    """Write <out_dir>/<log name>.pdf for an already loaded log."""
    file_name = os.path.splitext(os.path.basename(flog.filename))[0] or 'flight'
    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, f"{file_name}.pdf")

    figs = flight_overview(flog)
    captions = [f"{i}. {fig.get_label()}" for i, fig in enumerate(figs, start=1)]

    with PdfPages(out_path) as pdf:
        pages = [_text_page('Flight report', f"{file_name}.ulg",
                            'Figures\n' + '\n'.join(captions))]
        pages += _table_pages('PX4 Firmware details: system information',
                              system_information(flog), ['Field', 'Value'])
        for page in pages:
            pdf.savefig(page)
            plt.close(page)

        for fig, caption in zip(figs, captions):
            fig.text(0.5, 0.01, caption + '.', ha='center', fontsize=9, style='italic')
            pdf.savefig(fig, bbox_inches='tight')
            plt.close(fig)

        for page in _table_pages('PX4 firmware parameters', parameter_rows(flog),
                                 ['Parameter', 'Value']):
            pdf.savefig(page)
            plt.close(page)

        meta = pdf.infodict()
        meta['Title'] = f"Flight report {file_name}"
        meta['CreationDate'] = datetime.now()

    logger.info("Report saved to %s", out_path)
    return out_path


def generate_flight_report(file_in: str = None, dir_in: str = 'logs',
                           out_dir: str = 'reports') -> str:
    """Report with key flight information; the latest log by default.

    Pages: title with list of figures, system information, every overview
    figure, then all PX4 parameters.
    """
    if file_in:
        flog = load_log(file_in, dir_in)
    else:
        path = latest_log_path(dir_in)
        flog = load_log(os.path.relpath(path, dir_in), dir_in)
    return write_flight_report(flog, out_dir)
