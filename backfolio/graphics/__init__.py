from .backtest_chart import plot_portfolio_value, plot_asset_weights, plot_comparison

__all__ = ["plot_portfolio_value", "plot_asset_weights", "plot_comparison"]
