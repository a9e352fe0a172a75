"""
HR System Design Wizard
Blueprint registry.

    health_bp        /api/v1/health/*
    company_bp       /api/v1/companies/*
    hr_project_bp    /api/v1/hr-projects/*
    notification_bp  /api/v1/notifications/*
"""
