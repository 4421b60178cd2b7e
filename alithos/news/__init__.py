from .companies import CompanyMatch, detect_company, search_companies
from .keywords import extract_keywords, keywords_to_query

__all__ = ["CompanyMatch", "detect_company", "search_companies", "extract_keywords", "keywords_to_query"]
