"""Plain-text loan agreement rendering."""

from datetime import datetime
from typing import Optional

from models.loans import LoanModel


_AGREEMENT_TEMPLATE = """LOAN AGREEMENT

This agreement is made between the lender and borrower for a loan transaction, with the purpose of tracking the loan and providing updates.

The details of the loan are as follows:

Lender: {lender_name}
Borrower: {borrower_name}
National ID Number: {id_number}
Loan Amount: Rs. {amount}
Purpose of Loan: {purpose}
Loan Start Date: {start_date}
Loan End Date: {end_date}
Disbursement Mode: {loan_mode}

TERMS AND CONDITIONS:

1. This platform only tracks the loan progress, sends notifications, and provides updates.
2. The platform is NOT RESPONSIBLE for loan payments, repayments, or any other financial transactions related to this loan.
3. The borrower and lender should handle all financial aspects of the loan outside of this platform.
4. The platform will provide timely notifications related to the loan status, upcoming due dates, and any changes in the loan terms.
5. Any disputes related to payments, loan terms, or actions taken by either party must be resolved between the borrower and lender directly.

PLATFORM LIMITATIONS:

- The platform does NOT GUARANTEE repayment or enforce the loan terms.
- All financial transactions, including disbursement, repayments, and interest, are agreed between the lender and borrower directly.

By accepting this loan, both the lender and borrower acknowledge the role of this platform in tracking and notifying but not engaging in any financial aspects of the loan.

Signed by:
[Signature of Borrower]
[Signature of Lender]

Date: {generated_on}
"""


def _format_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def generate_loan_agreement(loan: LoanModel, generated_at: datetime, lender_name: Optional[str] = None) -> str:
    """Render the agreement snapshot stored on a loan at creation and edit time."""
    return _AGREEMENT_TEMPLATE.format(
        lender_name=lender_name or loan.lender_id,
        borrower_name=loan.borrower_name,
        id_number=loan.id_number,
        amount=loan.amount,
        purpose=loan.purpose,
        start_date=_format_date(loan.loan_start_date),
        end_date=_format_date(loan.loan_end_date),
        loan_mode=loan.loan_mode.value,
        generated_on=_format_date(generated_at),
    )
