from sqlalchemy.orm import Session
from datetime import datetime
import logging

from app.database.models.users import Company, User, ExpenseCategory
from app.database.services.audit_service import AuditRecorder
from app.logic.principal import UserRole
from app.ReqResModels.companymodels import (
    CreateCompanyRequest,
    CompanyResponse,
    CreateCompanyResponse
)
from app.logic.exceptions import (
    CompanyNotFoundError,
    CompanyAlreadyExistsError,
    UserAlreadyExistsError,
    DatabaseError
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    "Travel",
    "Food & Entertainment",
    "Office Supplies",
    "Transportation",
    "Accommodation",
    "Communication",
    "Training",
    "Other",
]


class CompanyService:

    @staticmethod
    def create_company(db: Session, request: CreateCompanyRequest) -> CreateCompanyResponse:
        """Create a company with its first administrator and default categories"""
        existing_company = db.query(Company).filter(Company.name == request.name).first()
        if existing_company:
            raise CompanyAlreadyExistsError(f"Company with name '{request.name}' already exists")

        existing_user = db.query(User).filter(User.email == request.admin_email).first()
        if existing_user:
            raise UserAlreadyExistsError(f"User with email '{request.admin_email}' already exists")

        try:
            now = datetime.utcnow()
            db_company = Company(
                name=request.name,
                country=request.country,
                default_currency=request.default_currency,
                created_at=now
            )
            db.add(db_company)
            db.flush()

            for name in DEFAULT_CATEGORIES:
                db.add(ExpenseCategory(company_id=db_company.id, name=name, created_at=now))

            admin = User(
                company_id=db_company.id,
                name=request.admin_name,
                email=request.admin_email,
                role=UserRole.ADMIN.value,
                is_active=True,
                created_at=now
            )
            db.add(admin)
            db.flush()

            AuditRecorder.record(
                db,
                company_id=db_company.id,
                actor_id=admin.id,
                action="COMPANY_CREATED",
                details={"name": request.name, "default_currency": request.default_currency}
            )

            db.commit()
            db.refresh(db_company)

        except Exception as e:
            db.rollback()
            raise DatabaseError(f"Failed to create company: {str(e)}")

        logger.info(f"Company {db_company.id} created with admin user {admin.id}")
        data = CompanyService._to_dict(db_company, user_count=1)
        return CreateCompanyResponse(**data, admin_user_id=admin.id)

    @staticmethod
    def get_company_by_id(db: Session, company_id: int) -> CompanyResponse:
        """Get company by ID"""
        company = db.query(Company).filter(Company.id == company_id).first()
        if not company:
            raise CompanyNotFoundError(f"Company with ID {company_id} not found")

        user_count = db.query(User).filter(User.company_id == company_id).count()
        return CompanyResponse(**CompanyService._to_dict(company, user_count))

    @staticmethod
    def _to_dict(company: Company, user_count: int) -> dict:
        return {
            "id": company.id,
            "name": company.name,
            "country": company.country,
            "default_currency": company.default_currency,
            "created_at": company.created_at.isoformat(),
            "updated_at": company.updated_at.isoformat() if company.updated_at else None,
            "user_count": user_count
        }
