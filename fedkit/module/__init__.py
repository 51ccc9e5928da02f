"""Interfaces for federation modules and API endpoints, auditing and a multi-member test harness."""