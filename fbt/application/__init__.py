"""
Application 계층 -- 오케스트레이션 + 서비스

Usage:
    from fbt.application.services.association_calculation_service import AssociationCalculationService
    from fbt.application.services.recommendation_service import RecommendationService
    from fbt.application.use_cases.calculate_associations_flow import CalculateAssociationsFlow
"""
