"""
Analytics Package
=================
Pure numerical building blocks used by the correlation engine.

Modules:
  stats_primitives - mean/variance, log-gamma, incomplete beta, Student's t CDF
  correlation      - Pearson and point-biserial coefficients + classification
"""
