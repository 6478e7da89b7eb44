"""Deal pipeline -- stage state machine, board aggregation and deal operations.

Provides PipelineModel and the stage-change rule (pipeline), group_by_stage
and calculate_deal_metrics (metrics), and DealService for the deal pages.
"""
