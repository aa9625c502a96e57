"""Response Aggregator.

Pure computation over analyzed answer-engine responses:
  1. Engine & phase normalization
  2. Per-metric rules (mention rate, average position, feature score, sentiment)
  3. Hierarchical roll-up (total / region / vertical / persona / query)
  4. Time segmentation (batch / week / month)
  5. Competitor mentions & rankings

Input:  list[AnalysisRecord] (rows of response_analysis)
Output: AggregateReport (pydantic, serialized by the API layer)

Nothing in this package touches the database or the network.
"""
