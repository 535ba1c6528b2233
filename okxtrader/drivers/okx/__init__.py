from okxtrader.drivers.okx.driver import OkxDriver

__all__ = ['OkxDriver']
