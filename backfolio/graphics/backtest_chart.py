import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.dates as mdates

def plot_portfolio_value(
        result,
        value_color: str = 'tab:blue',
        invested_color: str = 'tab:gray',
        rebalance_color: str = 'tab:red',
        show_rebalances: bool = True,
        figsize=(8, 4)
    ) -> tuple:
    """
    Portfolio value over time.

    Parameters:
    - result: BacktestResult
    - value_color: Color of the portfolio value line
    - invested_color: Color of the invested capital step line (drawn when DCA is active)
    - rebalance_color: Color of the rebalance markers
    - show_rebalances: If True, marks rebalance days on the value line
    - figsize: Tuple for figure size

    Returns:
    - fig, ax: matplotlib figure and axes
    """
    series = result.series
    value = series.portfolio

    fig, ax = plt.subplots(figsize=figsize, dpi=100)
    ax.plot(value.index, value.values, color=value_color, linewidth=1.5, label='Portfolio value')

    if result.dca is not None:
        ax.step(series.invested.index, series.invested.values, where='post',
                color=invested_color, linewidth=1, linestyle='--', label='Invested capital')

    if show_rebalances and len(series.rebalance_dates):
        marks = value.reindex(series.rebalance_dates)
        ax.scatter(marks.index, marks.values, color=rebalance_color, s=12, zorder=3, label='Rebalance')

    ax.set_ylabel('Value')
    ax.grid(alpha=0.3)
    ax.legend(loc='upper left')
    ax.xaxis.set_major_locator(mdates.AutoDateLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter('%Y-%m-%d'))
    fig.autofmt_xdate()

    plt.tight_layout()
    return fig, ax

def plot_asset_weights(result, figsize=(8, 4)) -> tuple:
    """
    Stacked area of daily asset weights.

    Returns:
    - fig, ax: matplotlib figure and axes
    """
    weights = result.series.asset_weights.fillna(0.0)
    weights = weights.loc[:, (weights > 0).any(axis=0)]

    fig, ax = plt.subplots(figsize=figsize, dpi=100)
    if weights.shape[1]:
        ax.stackplot(weights.index, weights.T.values, labels=[str(c) for c in weights.columns], alpha=0.85)
    ax.set_ylim(0, 1)
    ax.set_ylabel('Weight')
    ax.legend(loc='upper left', fontsize=8)
    ax.xaxis.set_major_locator(mdates.AutoDateLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter('%Y-%m-%d'))
    fig.autofmt_xdate()

    plt.tight_layout()
    return fig, ax

def plot_comparison(comparison, normalize: bool = False, figsize=(8, 4)) -> tuple:
    """
    One line per saved portfolio on the shared timeline.

    Parameters:
    - comparison: PortfolioComparison
    - normalize: If True, rebase every line to 1.0 at its first value

    Returns:
    - fig, ax: matplotlib figure and axes
    """
    data = comparison.to_nav() if normalize else comparison.values
    data = data.copy()
    data.index = pd.to_datetime(data.index)

    fig, ax = plt.subplots(figsize=figsize, dpi=100)
    colors = plt.cm.tab10(np.linspace(0, 1, max(len(data.columns), 1)))
    for color, col in zip(colors, data.columns):
        ax.plot(data.index, data[col].values, color=color, linewidth=1.2, label=str(col))

    ax.set_ylabel('NAV' if normalize else 'Value')
    ax.grid(alpha=0.3)
    ax.legend(loc='upper left')
    ax.xaxis.set_major_locator(mdates.AutoDateLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter('%Y-%m-%d'))
    fig.autofmt_xdate()

    plt.tight_layout()
    return fig, ax
