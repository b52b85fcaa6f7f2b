from netwatch.analysis.stats import TrafficStatsAggregator
from netwatch.analysis.anomalies import AnomalyDetector
from netwatch.analysis.services import service_name
