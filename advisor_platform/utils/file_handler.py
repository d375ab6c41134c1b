#file_handler.py
import os
import re
import uuid
from werkzeug.utils import secure_filename
from PyPDF2 import PdfReader
from PyPDF2.errors import DependencyError, PdfReadError
import structlog

logger = structlog.get_logger(__name__)

AMOUNT_PATTERN = re.compile(r'(?:total|grand total|portfolio value)[^\d\n]*([\d,]+\.?\d*)', re.IGNORECASE)
PAN_PATTERN = re.compile(r'\b[A-Z]{5}[0-9]{4}[A-Z]\b')


class CASFileHandler:
    """Stores Consolidated Account Statement PDFs and reads their text"""

    def __init__(self, upload_folder, max_file_size=10 * 1024 * 1024):
        self.upload_folder = os.path.join(upload_folder, 'cas')
        self.max_file_size = max_file_size
        self.allowed_extensions = {'pdf'}

    def is_allowed_file(self, filename):
        """Check if file extension is allowed"""
        return '.' in filename and \
               filename.rsplit('.', 1)[1].lower() in self.allowed_extensions

    def save_file(self, file, client_id):
        """Save uploaded file and return (file_path, size)"""
        if not file or not file.filename or not self.is_allowed_file(file.filename):
            raise ValueError("Only PDF files are allowed for CAS upload")

        # Unique, client-scoped filename
        filename = secure_filename(file.filename)
        unique_filename = f"client_{client_id}_{uuid.uuid4().hex}_{filename}"
        file_path = os.path.join(self.upload_folder, unique_filename)

        os.makedirs(self.upload_folder, exist_ok=True)
        file.save(file_path)

        size = os.path.getsize(file_path)
        if size > self.max_file_size:
            self.cleanup_file(file_path)
            raise ValueError(f"File too large. Maximum size is {self.max_file_size // (1024 * 1024)}MB.")

        logger.info("cas_file_saved", client_id=client_id, file_name=filename, size=size)
        return file_path, size

    def extract_text(self, file_path, password=None):
        """Extract text from a (possibly password protected) CAS PDF"""
        try:
            with open(file_path, 'rb') as file:
                pdf_reader = PdfReader(file)
                if pdf_reader.is_encrypted:
                    if not password or not pdf_reader.decrypt(password):
                        raise ValueError("CAS file is password protected; a valid password is required")

                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except DependencyError as e:
            raise ValueError(f"CAS file uses unsupported encryption: {e}")
        except PdfReadError as e:
            raise ValueError(f"CAS file is not a readable PDF: {e}")

        return "\n".join(pages).strip(), len(pages)

    def parse_statement(self, file_path, password=None):
        """Read statement-level metadata from a CAS PDF"""
        text, page_count = self.extract_text(file_path, password)
        if not text:
            raise ValueError("No text could be extracted from the CAS file")
        return summarize_cas_text(text, page_count)

    def cleanup_file(self, file_path):
        """Delete uploaded file"""
        try:
            if file_path and os.path.exists(file_path):
                os.remove(file_path)
        except OSError as e:
            logger.warning("cas_file_cleanup_failed", file_path=file_path, error=str(e))


def detect_cas_type(text):
    upper = text.upper()
    if 'CDSL' in upper or 'CENTRAL DEPOSITORY SERVICES' in upper:
        return 'CDSL'
    if 'NSDL' in upper or 'NATIONAL SECURITIES DEPOSITORY' in upper:
        return 'NSDL'
    return 'UNKNOWN'


def summarize_cas_text(text, page_count=None):
    """Depository, PAN mentions and the last 'Total' amount found in the text"""
    total_value = None
    for match in AMOUNT_PATTERN.finditer(text):
        try:
            total_value = float(match.group(1).replace(',', ''))
        except ValueError:
            continue

    return {
        'cas_type': detect_cas_type(text),
        'page_count': page_count,
        'pan_numbers': sorted(set(PAN_PATTERN.findall(text))),
        'total_value': total_value,
        'text_length': len(text),
    }
