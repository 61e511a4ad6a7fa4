"""dtp-plot: transactions and gas per block from a dtp stats file."""

import argparse
import sys

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

# round account block index gas_used status
COLUMNS = 6


def load_stats(path):
    header = None
    rows = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if line.startswith("#"):
                # first header line holds: kind accounts start_block
                if header is None:
                    header = line[1:].split()
                continue
            round_, account, block, index, gas_used, _gas_cost, status, _tx_hash = line.split()
            rows.append((int(round_), int(account), int(block), int(index),
                         int(gas_used), int(status)))
    return header, np.array(rows, dtype=np.int64).reshape(-1, COLUMNS)


def per_block(rows):
    # transactions that never made it into a block are stored with block -1
    mined = rows[rows[:, 2] >= 0]
    blocks, inverse, counts = np.unique(mined[:, 2], return_inverse=True, return_counts=True)
    gas = np.bincount(inverse, weights=mined[:, 4], minlength=len(blocks)).astype(np.int64)
    return blocks, counts, gas


def build_figure(header, blocks, counts, gas):
    title = "dtp"
    if header and len(header) >= 2:
        title = "{} transactions from {} accounts".format(header[0], header[1])

    fig = make_subplots(rows=2, cols=1, shared_xaxes=True)
    fig.add_trace(go.Bar(x=blocks, y=counts, name='transactions'), row=1, col=1)
    fig.add_trace(go.Scatter(x=blocks, y=gas, mode='lines+markers', name='gas used'),
                  row=2, col=1)
    fig.update_layout(
        title=title,
        font_size=20,
        legend=dict(
            y=0.99,
            x=0.01
        )
    )
    fig.update_yaxes(title_text='Transactions', row=1, col=1)
    fig.update_yaxes(title_text='Gas', row=2, col=1)
    fig.update_xaxes(title_text='Block', row=2, col=1)
    return fig


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="dtp-plot", description="Plot transactions and gas per block of a dtp run.")
    parser.add_argument("stats_file", help="file written by dtp --stats-file")
    parser.add_argument("--output", help="write the chart to this HTML file instead of showing it")
    args = parser.parse_args(argv)

    try:
        header, rows = load_stats(args.stats_file)
    except (OSError, ValueError) as e:
        sys.exit("Error: can't read {}: {}".format(args.stats_file, e))
    blocks, counts, gas = per_block(rows)

    print("Blocks: {}, transactions: {}, max per block: {}, total gas: {}"
          .format(len(blocks), int(counts.sum()), int(counts.max()) if len(counts) else 0,
                  int(gas.sum())))

    fig = build_figure(header, blocks, counts, gas)
    if args.output:
        fig.write_html(args.output)
    else:
        fig.show()
    return 0


if __name__ == "__main__":
    sys.exit(main())
